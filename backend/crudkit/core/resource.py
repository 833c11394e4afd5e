"""
crudkit Backend — Static Resource Options
==========================================

What:  Declarative configuration shared by a resource's controller and routes.
When:  Built once when the route table is assembled; never mutated afterwards
       (frozen dataclasses).
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, Type

from pydantic import BaseModel

from crudkit.config import settings
from crudkit.core.text import pascal_to_camel
from crudkit.exceptions import InvalidConfiguration
from crudkit.models.base import RecordStatus


@dataclass(frozen=True)
class ResourceSchemas:
    """
    Pydantic models describing one resource.

    response:        detail/create/update/delete payloads
    response_item:   list items (defaults to `response`)
    create_request:  body of PUT /{base_path}
    update_request:  body of POST /{base_path}/{uid}
    """

    response: Type[BaseModel]
    response_item: Optional[Type[BaseModel]] = None
    create_request: Optional[Type[BaseModel]] = None
    update_request: Optional[Type[BaseModel]] = None

    @property
    def item(self) -> Type[BaseModel]:
        return self.response_item or self.response


@dataclass(frozen=True)
class ResourceConfig:
    """
    Per-resource options consumed by ResourceController.

    Attributes:
        store_name:       Name registered in the DataStore (e.g. "Notification")
        schemas:          ResourceSchemas for shaping and validation
        user_key:         Record attribute holding the owning user's uid
        page_size:        Default page size for list requests
        check_owner:      Enforce record ownership on list/detail/update/delete
        allowed_statuses: Status values a list filter may ask for; the first
                          one is injected when the filter has none
        data_key:         Response key for one record (default: camelCase store name)
        data_key_plural:  Response key for lists (default: data_key + "s")
    """

    store_name: str
    schemas: ResourceSchemas
    user_key: str = "user_id"
    page_size: int = field(default_factory=lambda: settings.default_page_size)
    check_owner: bool = False
    allowed_statuses: Tuple[str, ...] = (RecordStatus.ACTIVE.value,)
    data_key: Optional[str] = None
    data_key_plural: Optional[str] = None

    def __post_init__(self):
        if not self.store_name:
            raise InvalidConfiguration("Store name must not be empty")
        if self.schemas is None:
            raise InvalidConfiguration("Schemas must not be empty")
        if not self.allowed_statuses:
            raise InvalidConfiguration("At least one allowed status is required")

        # frozen: derived defaults go through object.__setattr__
        if not self.data_key:
            object.__setattr__(self, "data_key", pascal_to_camel(self.store_name))
        if not self.data_key_plural:
            object.__setattr__(self, "data_key_plural", f"{self.data_key}s")
