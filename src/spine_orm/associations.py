"""Association descriptors: belongs-to, has-many, has-one.

A descriptor only names its target entity; the target ``Schema`` is
looked up in the reflection registry when the association is first used,
so associations may reference entities that are defined later.

Foreign keys are inferred from entity names:

====================================  ==================  ====================
Declaration (on owner)                Foreign key         Column lives on
====================================  ==================  ====================
``belongs_to("author")``              ``author_id``       owner
``has_many("books")`` (owner author)  ``author_id``       target (``book``)
``has_one("profile")`` (owner user)   ``user_id``         target (``profile``)
====================================  ==================  ====================

::

    +------------------------+        +----------------+
    |         books          |        |    authors     |
    +------------+-----------+        +------+---------+
    | id         | integer   |    +-->| id   | integer | pk
    | author_id  | integer   |*---+   | name | string  |
    +------------+-----------+        +------+---------+
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from spine_orm.errors import UnknownAttributeError

if TYPE_CHECKING:
    from spine_orm.record import Entity
    from spine_orm.relation import Relation
    from spine_orm.schema import Schema


class AssociationKind(str, Enum):
    BELONGS_TO = "belongs_to"
    HAS_MANY = "has_many"
    HAS_ONE = "has_one"


@dataclass(frozen=True)
class Association:
    """
    Relationship between an owner entity and a target entity.

    Attributes:
        kind: belongs_to, has_many or has_one
        name: Name the association is accessed by on the owner
        owner: Entity name of the declaring schema
        target: Entity name of the associated schema
        foreign_key: Integer column holding the reference
    """

    kind: AssociationKind
    name: str
    owner: str
    target: str
    foreign_key: str

    @property
    def collection(self) -> bool:
        return self.kind is AssociationKind.HAS_MANY

    def join_columns(self, owner: Schema, target: Schema) -> tuple[str, str] | None:
        """Qualified ``(owner_column, target_column)`` pair, or None when unresolvable."""
        if self.kind is AssociationKind.BELONGS_TO:
            if not owner.has_attribute(self.foreign_key):
                return None
            return owner.qualify(self.foreign_key), target.qualify(target.primary_key)
        if not target.has_attribute(self.foreign_key):
            return None
        return owner.qualify(owner.primary_key), target.qualify(self.foreign_key)

    def scope(self, owner: Entity, targets: Relation) -> Relation:
        """Relation over the target records referencing ``owner``."""
        if self.kind is AssociationKind.BELONGS_TO:
            return targets.where(targets.primary_key, owner.attribute(self.foreign_key))
        if not targets.schema.has_attribute(self.foreign_key):
            raise UnknownAttributeError(targets.schema.name, self.foreign_key)
        return targets.where(self.foreign_key, owner.id)

    def load(self, owner: Entity, targets: Relation) -> Any:
        """Resolve the association for ``owner``: an entity, None, or a list."""
        if self.kind is AssociationKind.BELONGS_TO:
            target_id = owner.attribute(self.foreign_key)
            if target_id is None:
                return None
            return targets.find(target_id)

        # An unsaved owner cannot be referenced yet.
        if owner.id is None:
            return [] if self.collection else None

        related = self.scope(owner, targets)
        if self.collection:
            return related.to_list()
        # has_one: first match wins, uniqueness is up to the caller
        return related.first()

    def __str__(self) -> str:
        return f"#<Association type: '{self.kind.value}', name: '{self.name}'>"


__all__ = [
    "AssociationKind",
    "Association",
]
