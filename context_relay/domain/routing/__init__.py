from typing import Awaitable, Protocol, Sequence, Union

from context_relay.domain.models.pipeline_state import Message, RoutingDecision


class Router(Protocol):
    """Anything that turns a message plus prior history into a routing decision"""

    def route(
        self,
        message: Message,
        history: Sequence[Message]
    ) -> Union[RoutingDecision, Awaitable[RoutingDecision]]:
        ...
