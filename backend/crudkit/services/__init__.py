# Services package init
"""
crudkit Backend — Services Layer
=================================

What:  Collaborators the controllers call for work that is not plain CRUD.
How:   Built once in the application lifespan and handed to controllers
       through RequestContext.

Service Inventory:
    - FileService:  Upload validation and storage (avatars)
    - ImageService: Avatar variants resized with Pillow
    - UserManager:  One-time verification code issue and delivery
"""
