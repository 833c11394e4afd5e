# Core package init
"""
crudkit Backend — Generic Resource Scaffolding
===============================================

What:  The declarative CRUD layer every resource is built on.

Module Inventory:
    - resource.py:   ResourceConfig / ResourceSchemas (static per-resource options)
    - query.py:      QueryParams, PagingQuery, PaginationResult
    - response.py:   Success envelope builders
    - context.py:    RequestContext handed to every controller call
    - hooks.py:      Async lifecycle hook interface with no-op defaults
    - controller.py: ResourceController (list/detail/create/update/delete)
    - route.py:      ResourceRoute builders + create_route normalizer
"""
