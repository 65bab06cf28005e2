"""Member specifications: what is called and under which requirement."""
from dataclasses import dataclass, replace
from enum import Enum


class MemberKind(Enum):
    PROPERTY = "property"
    METHOD = "method"


class Requirement(Enum):
    """Policy attached to a member of the device contract."""
    MANDATORY = "mandatory"
    OPTIONAL = "optional"
    # Capability flag says present, so the member must work
    MUST_BE_IMPLEMENTED = "must_be_implemented"
    # Capability flag says absent, so the member must raise not-implemented
    MUST_NOT_BE_IMPLEMENTED = "must_not_be_implemented"

    @classmethod
    def for_capability(cls, present: bool) -> "Requirement":
        return cls.MUST_BE_IMPLEMENTED if present else cls.MUST_NOT_BE_IMPLEMENTED


@dataclass(frozen=True)
class MemberSpec:
    """One member of a device contract."""
    name: str
    kind: MemberKind = MemberKind.PROPERTY
    requirement: Requirement = Requirement.MANDATORY

    @property
    def is_property(self) -> bool:
        return self.kind is MemberKind.PROPERTY

    def with_requirement(self, requirement: Requirement) -> "MemberSpec":
        return replace(self, requirement=requirement)

    def renamed(self, name: str) -> "MemberSpec":
        return replace(self, name=name)


def prop(name: str, requirement: Requirement = Requirement.MANDATORY) -> MemberSpec:
    return MemberSpec(name, MemberKind.PROPERTY, requirement)


def method(name: str, requirement: Requirement = Requirement.MANDATORY) -> MemberSpec:
    return MemberSpec(name, MemberKind.METHOD, requirement)
