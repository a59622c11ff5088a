"""Attribute-based routing of Created events to jurisdiction lanes.

Routing decisions look only at message attributes, the way a topic
subscription filter policy does. Consumers never route on the payload; they
only refuse messages whose attribute does not match their own lane.
"""

from collections.abc import Iterable, Mapping

from app.core.exceptions import MisroutedMessageException, UnsupportedJurisdictionException

ROUTING_ATTRIBUTE = "countryISO"


class FilterPolicy:
    """Accepts a message when each attribute takes one of the allowed values."""

    def __init__(self, allowed: Mapping[str, Iterable[str]]):
        self.allowed = {name: frozenset(values) for name, values in allowed.items()}

    def matches(self, attributes: Mapping[str, str]) -> bool:
        return all(attributes.get(name) in values for name, values in self.allowed.items())

    def __repr__(self) -> str:
        return f"FilterPolicy({self.allowed!r})"


class RoutingTable:
    """Lane name -> filter policy."""

    def __init__(self, policies: Mapping[str, FilterPolicy]):
        self.policies = dict(policies)

    @classmethod
    def for_countries(cls, countries: Iterable[str]) -> "RoutingTable":
        """One lane per country, each accepting only its own code."""
        return cls({code: FilterPolicy({ROUTING_ATTRIBUTE: [code]}) for code in countries})

    def lanes_for(self, attributes: Mapping[str, str]) -> list[str]:
        """
        Lanes whose policy accepts the message.

        Raises:
            UnsupportedJurisdictionException: If no lane accepts the message
        """
        lanes = sorted(lane for lane, policy in self.policies.items() if policy.matches(attributes))
        if not lanes:
            raise UnsupportedJurisdictionException(
                f"No lane accepts {ROUTING_ATTRIBUTE}={attributes.get(ROUTING_ATTRIBUTE)!r}"
            )
        return lanes


def routing_attributes(country_iso: str) -> dict[str, str]:
    """Message attributes for a Created event."""
    return {ROUTING_ATTRIBUTE: country_iso}


def ensure_lane(lane: str, attributes: Mapping[str, str]) -> None:
    """
    Reject a message delivered to a lane it was not routed to.

    Raises:
        MisroutedMessageException: If the routing attribute names another lane
    """
    received = attributes.get(ROUTING_ATTRIBUTE)
    if received != lane:
        raise MisroutedMessageException(
            f"Invalid country in message. Expected: {lane}, Received: {received}"
        )
