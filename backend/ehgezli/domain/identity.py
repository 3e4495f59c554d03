from dataclasses import dataclass
from enum import StrEnum


class SubscriberKind(StrEnum):
    USER = "user"
    RESTAURANT = "restaurant"


@dataclass(frozen=True)
class Identity:
    id: int
    kind: SubscriberKind

    @property
    def is_restaurant(self) -> bool:
        return self.kind == SubscriberKind.RESTAURANT
