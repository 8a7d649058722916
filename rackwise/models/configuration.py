"""Configuration snapshot: the current component set of one server build."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from rackwise.models.components import Component, ComponentType


class Configuration(BaseModel):
    """Order-irrelevant set of components being assembled for one server.

    The engine treats a Configuration as an immutable snapshot: helpers
    that "change" it return a new instance.
    """

    config_uuid: Optional[str] = None
    components: List[Component] = Field(default_factory=list)

    def components_of(self, component_type: ComponentType) -> List[Component]:
        """All components of one type, in snapshot order."""
        return [c for c in self.components if c.component_type == component_type]

    def first_of(self, component_type: ComponentType) -> Optional[Component]:
        for c in self.components:
            if c.component_type == component_type:
                return c
        return None

    def motherboard(self) -> Optional[Component]:
        return self.first_of(ComponentType.MOTHERBOARD)

    def chassis(self) -> Optional[Component]:
        return self.first_of(ComponentType.CHASSIS)

    def motherboard_id(self) -> Optional[str]:
        mb = self.motherboard()
        return mb.uuid if mb else None

    def chassis_id(self) -> Optional[str]:
        ch = self.chassis()
        return ch.uuid if ch else None

    def find(self, uuid: str) -> Optional[Component]:
        for c in self.components:
            if c.uuid == uuid:
                return c
        return None

    def count_of(self, component_type: ComponentType) -> int:
        """Total units of a type, honouring quantity."""
        return sum(c.quantity for c in self.components_of(component_type))

    def is_empty(self) -> bool:
        return not self.components

    def with_component(self, component: Component) -> "Configuration":
        return Configuration(
            config_uuid=self.config_uuid,
            components=[*self.components, component],
        )

    def without_component(self, uuid: str) -> "Configuration":
        return Configuration(
            config_uuid=self.config_uuid,
            components=[c for c in self.components if c.uuid != uuid],
        )
