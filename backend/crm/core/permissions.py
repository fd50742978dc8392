"""
Role-based access control for every CRM resource.

The permission tables are plain immutable data, built once at import time
and wrapped in a frozen AccessPolicy. Request handlers receive the policy
through a dependency (see ``crm.api.deps.get_access_policy``) rather than
reading module state directly, so tests can inject their own tables.

Every query answers with a bool and never raises. Unknown roles, resources,
routes and fields are denied (fail closed).
"""
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Iterable, List, Mapping, Optional, Union


class Role(str, Enum):
    ADMIN = "Admin"
    MANAGER = "Manager"
    SALES = "Sales"
    TECHNICIAN = "Technician"
    CUSTOMER = "Customer"


class Resource(str, Enum):
    CUSTOMERS = "customers"
    SALES = "sales"  # orders
    REPAIRS = "repairs"
    INVENTORY = "inventory"  # products
    ANALYTICS = "analytics"  # dashboard
    APPOINTMENTS = "appointments"
    LEADS = "leads"


class Action(str, Enum):
    READ = "read"
    WRITE = "write"  # create and update
    DELETE = "delete"


RoleLike = Union[Role, str, None]
ResourceLike = Union[Resource, str, None]

Matrix = Mapping[Role, FrozenSet[Resource]]


def _matrix(table: dict) -> Matrix:
    return MappingProxyType({role: frozenset(resources) for role, resources in table.items()})


ALL_RESOURCES = frozenset(Resource)

READ_MATRIX: Matrix = _matrix({
    Role.ADMIN: ALL_RESOURCES,
    Role.MANAGER: {
        Resource.CUSTOMERS, Resource.SALES, Resource.REPAIRS, Resource.INVENTORY,
        Resource.ANALYTICS, Resource.APPOINTMENTS,
    },
    Role.SALES: {Resource.CUSTOMERS, Resource.INVENTORY, Resource.SALES, Resource.LEADS},
    Role.TECHNICIAN: {Resource.REPAIRS},
    Role.CUSTOMER: {Resource.REPAIRS, Resource.APPOINTMENTS, Resource.SALES, Resource.LEADS},
})

WRITE_MATRIX: Matrix = _matrix({
    Role.ADMIN: ALL_RESOURCES,
    Role.MANAGER: {Resource.CUSTOMERS, Resource.INVENTORY, Resource.REPAIRS, Resource.APPOINTMENTS},
    Role.SALES: {Resource.CUSTOMERS, Resource.SALES, Resource.LEADS},
    Role.TECHNICIAN: {Resource.REPAIRS},
    Role.CUSTOMER: {Resource.APPOINTMENTS, Resource.LEADS},
})

DELETE_MATRIX: Matrix = _matrix({
    Role.ADMIN: {
        Resource.CUSTOMERS, Resource.SALES, Resource.REPAIRS, Resource.INVENTORY,
        Resource.APPOINTMENTS, Resource.LEADS,
    },
    Role.MANAGER: {Resource.CUSTOMERS, Resource.REPAIRS, Resource.APPOINTMENTS},
    Role.SALES: set(),
    Role.TECHNICIAN: set(),
    Role.CUSTOMER: set(),
})

# Financial records can only ever be deleted by these roles
FINANCIAL_RESOURCES: FrozenSet[Resource] = frozenset({Resource.SALES})
FINANCIAL_DELETE_ROLES: FrozenSet[Role] = frozenset({Role.ADMIN})

# Field-level write scope: (role, resource) -> the only fields that role may set
FIELD_SCOPES: Mapping[tuple, FrozenSet[str]] = MappingProxyType({
    (Role.TECHNICIAN, Resource.REPAIRS): frozenset({"status", "technicianNotes"}),
})

INVENTORY_STOCK_EDITORS: FrozenSet[Role] = frozenset({Role.ADMIN, Role.MANAGER})

ROUTE_TO_RESOURCE: Mapping[str, Resource] = MappingProxyType({
    "/": Resource.ANALYTICS,
    "/dashboard": Resource.ANALYTICS,
    "/customers": Resource.CUSTOMERS,
    "/leads": Resource.LEADS,
    "/products": Resource.INVENTORY,
    "/repairs": Resource.REPAIRS,
    "/orders": Resource.SALES,
    "/appointments": Resource.APPOINTMENTS,
})

LANDING_PATH_BY_ROLE: Mapping[Role, str] = MappingProxyType({
    Role.ADMIN: "/dashboard",
    Role.MANAGER: "/dashboard",
    Role.SALES: "/customers",
    Role.TECHNICIAN: "/repairs",
    Role.CUSTOMER: "/appointments",
})


def parse_role(value: RoleLike) -> Optional[Role]:
    """Return the Role for ``value`` or None if it is not a known role."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except (ValueError, TypeError):
        return None


def parse_resource(value: ResourceLike) -> Optional[Resource]:
    """Return the Resource for ``value`` or None if it is not a known resource."""
    if isinstance(value, Resource):
        return value
    try:
        return Resource(value)
    except (ValueError, TypeError):
        return None


@dataclass(frozen=True)
class AccessPolicy:
    """Pure permission evaluator over static per-role tables."""

    read: Matrix = field(default_factory=lambda: READ_MATRIX)
    write: Matrix = field(default_factory=lambda: WRITE_MATRIX)
    delete: Matrix = field(default_factory=lambda: DELETE_MATRIX)
    field_scopes: Mapping[tuple, FrozenSet[str]] = field(default_factory=lambda: FIELD_SCOPES)
    routes: Mapping[str, Resource] = field(default_factory=lambda: ROUTE_TO_RESOURCE)
    financial_resources: FrozenSet[Resource] = FINANCIAL_RESOURCES
    financial_delete_roles: FrozenSet[Role] = FINANCIAL_DELETE_ROLES
    stock_editors: FrozenSet[Role] = INVENTORY_STOCK_EDITORS
    landing_paths: Mapping[Role, str] = field(default_factory=lambda: LANDING_PATH_BY_ROLE)

    @staticmethod
    def _lookup(matrix: Matrix, role: RoleLike, resource: ResourceLike) -> bool:
        r = parse_role(role)
        res = parse_resource(resource)
        if r is None or res is None:
            return False
        return res in matrix.get(r, frozenset())

    def can_read(self, role: RoleLike, resource: ResourceLike) -> bool:
        return self._lookup(self.read, role, resource)

    def can_write(self, role: RoleLike, resource: ResourceLike) -> bool:
        return self._lookup(self.write, role, resource)

    def can_delete(self, role: RoleLike, resource: ResourceLike) -> bool:
        """Delete set membership, with financial records restricted to Admin."""
        r = parse_role(role)
        res = parse_resource(resource)
        if r is None or res is None:
            return False
        if res in self.financial_resources and r not in self.financial_delete_roles:
            return False
        return res in self.delete.get(r, frozenset())

    def allows(self, role: RoleLike, action: Union[Action, str], resource: ResourceLike) -> bool:
        """Dispatch to can_read/can_write/can_delete by action name."""
        try:
            action = Action(action)
        except (ValueError, TypeError):
            return False
        if action is Action.READ:
            return self.can_read(role, resource)
        if action is Action.WRITE:
            return self.can_write(role, resource)
        return self.can_delete(role, resource)

    def can_edit_field(self, role: RoleLike, resource: ResourceLike, field_name: str) -> bool:
        """
        Field-level write scope.

        A role without write access may set no field. A role with write access
        may set any field unless a scope is registered for (role, resource),
        in which case only the listed fields are allowed.
        """
        if not self.can_write(role, resource):
            return False
        scope = self.field_scopes.get((parse_role(role), parse_resource(resource)))
        if scope is None:
            return True
        return field_name in scope

    def disallowed_fields(self, role: RoleLike, resource: ResourceLike, field_names: Iterable[str]) -> List[str]:
        """Fields in ``field_names`` the role may not set, in input order."""
        return [name for name in field_names if not self.can_edit_field(role, resource, name)]

    def can_edit_inventory_stock(self, role: RoleLike) -> bool:
        """Only Admin and Manager may set product stock directly."""
        r = parse_role(role)
        return r is not None and r in self.stock_editors and self.can_write(r, Resource.INVENTORY)

    def can_access_route(self, role: RoleLike, route: str) -> bool:
        """Navigation visibility: the route's resource must be readable."""
        resource = self.routes.get(route)
        if resource is None:
            return False
        return self.can_read(role, resource)

    def landing_path(self, role: RoleLike) -> Optional[str]:
        r = parse_role(role)
        if r is None:
            return None
        return self.landing_paths.get(r)

    def permissions_for(self, role: RoleLike) -> dict:
        """Per-resource read/write/delete flags, the shape the dashboard renders."""
        return {
            resource.value: {
                Action.READ.value: self.can_read(role, resource),
                Action.WRITE.value: self.can_write(role, resource),
                Action.DELETE.value: self.can_delete(role, resource),
            }
            for resource in Resource
        }

    def route_visibility(self, role: RoleLike) -> dict:
        return {route: self.can_access_route(role, route) for route in self.routes}


def is_customer_scoped(role: RoleLike) -> bool:
    """Customers only ever see their own orders."""
    return parse_role(role) is Role.CUSTOMER


def is_technician_scoped(role: RoleLike) -> bool:
    """Technicians only ever see repairs assigned to them."""
    return parse_role(role) is Role.TECHNICIAN


DEFAULT_POLICY = AccessPolicy()
