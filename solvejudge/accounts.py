"""Accounts, roles and the permissions they grant."""

from __future__ import annotations

import enum
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

GUEST_ROLE = "guest_group"
SCOPE_USER_ROLE = "scope_user_group"


class AccountError(Exception):
    """Raised when an account context cannot be built."""


class PermissionSet(set):
    """A set of permission names."""

    def add_permission(self, *args: str) -> None:
        self.update(args)

    def has_permission(self, name: str) -> bool:
        return name in self

    def clone(self) -> PermissionSet:
        return PermissionSet(self)


class AccountKind(str, enum.Enum):
    USER = "user"
    SCOPE_USER = "scope_user"


@dataclass(frozen=True)
class Account:
    id: int
    kind: AccountKind


@dataclass(frozen=True)
class Role:
    """A role; built-in roles are permissions, the others are groups."""

    id: int
    name: str
    built_in: bool = False


@dataclass
class AccountContext:
    """Who is acting and what they are allowed to do."""

    account: Account | None = None
    user: Any = None
    scope_user: Any = None
    permissions: PermissionSet = field(default_factory=PermissionSet)

    def has_permission(self, name: str) -> bool:
        return self.permissions.has_permission(name)


class AccountManager:
    """Builds account contexts from roles and the edges between them.

    ``role_edges`` holds ``(role_id, child_id)`` pairs; ``account_roles``
    maps account ids to extra role ids; ``users`` and ``scope_users`` map
    account ids to user objects (users carry a ``status``); ``settings``
    maps setting keys to values.
    """

    def __init__(
        self,
        roles: Iterable[Role],
        role_edges: Iterable[tuple[int, int]] = (),
        account_roles: Mapping[int, Iterable[int]] | None = None,
        users: Mapping[int, Any] | None = None,
        scope_users: Mapping[int, Any] | None = None,
        settings: Mapping[str, str] | None = None,
    ) -> None:
        self._roles = {role.id: role for role in roles}
        self._roles_by_name = {role.name: role for role in self._roles.values()}
        self._children: dict[int, list[int]] = defaultdict(list)
        for role_id, child_id in role_edges:
            self._children[role_id].append(child_id)
        self.account_roles = account_roles or {}
        self.users = users or {}
        self.scope_users = scope_users or {}
        self.settings = settings or {}

    def make_context(self, account: Account | None) -> AccountContext:
        context = AccountContext(account=account)
        role_ids: list[int] = []
        if account is None:
            role_ids.append(self._get_guest_role().id)
        elif account.kind == AccountKind.USER:
            user = self._lookup(self.users, account.id, "user")
            context.user = user
            role_ids.append(self._get_user_role(user.status).id)
            role_ids.extend(self.account_roles.get(account.id, ()))
        elif account.kind == AccountKind.SCOPE_USER:
            context.scope_user = self._lookup(self.scope_users, account.id, "scope user")
            role_ids.append(self._get_scope_user_role().id)
        else:
            raise AccountError(f"unknown account kind: {account.kind}")
        context.permissions = self._get_recursive_permissions(role_ids)
        return context

    @staticmethod
    def _lookup(items: Mapping[int, Any], account_id: int, what: str) -> Any:
        try:
            return items[account_id]
        except KeyError:
            raise AccountError(f"{what} for account {account_id} not found") from None

    def _role_by_name(self, name: str) -> Role:
        try:
            return self._roles_by_name[name]
        except KeyError:
            raise AccountError(f"role {name!r} not found") from None

    def _get_guest_role(self) -> Role:
        return self._role_by_name(self.settings.get("accounts.guest_role", GUEST_ROLE))

    def _get_user_role(self, status: Any) -> Role:
        status = getattr(status, "value", status)
        name = self.settings.get(
            f"accounts.{status}_user_role", f"{status}_user_group"
        )
        return self._role_by_name(name)

    def _get_scope_user_role(self) -> Role:
        return self._role_by_name(
            self.settings.get("accounts.scope_user_role", SCOPE_USER_ROLE)
        )

    def _get_recursive_permissions(self, role_ids: list[int]) -> PermissionSet:
        seen = set(role_ids)
        stack = list(role_ids)
        permissions = PermissionSet()
        while stack:
            role_id = stack.pop()
            try:
                role = self._roles[role_id]
            except KeyError:
                raise AccountError(f"role {role_id} not found") from None
            if role.built_in:
                permissions.add_permission(role.name)
            for child_id in self._children.get(role_id, ()):
                if child_id not in seen:
                    seen.add(child_id)
                    stack.append(child_id)
        return permissions