import logging
from typing import Dict, List, Callable, Any
import asyncio
import inspect

logger = logging.getLogger(__name__)

APPLICATION_SUBMITTED = "APPLICATION_SUBMITTED"
APPLICATION_REVIEWED = "APPLICATION_REVIEWED"


class EventManager:
    """
    Internal event bus decoupling state changes from their side effects.
    Handler failures are logged here and never reach the emitter.
    """
    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str, handler: Callable):
        """Register a handler for a specific event type (once per handler)."""
        handlers = self._subscribers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.info(f"🔌 {handler.__name__} subscribed to {event_type}")

    def unsubscribe(self, event_type: str, handler: Callable):
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def subscribers(self, event_type: str) -> List[Callable]:
        return list(self._subscribers.get(event_type, []))

    async def emit(self, event_type: str, payload: Any) -> None:
        """Dispatch event to all subscribers concurrently."""
        handlers = self.subscribers(event_type)
        if not handlers:
            logger.debug(f"Event {event_type} emitted but no subscribers found.")
            return

        logger.info(f"📢 Emitting event: {event_type}")

        tasks = []
        for handler in handlers:
            if inspect.iscoroutinefunction(handler):
                tasks.append(handler(payload))
            else:
                # Sync handlers go to the thread pool so they don't block the loop
                loop = asyncio.get_running_loop()
                tasks.append(loop.run_in_executor(None, handler, payload))

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(f"❌ Handler {handler.__name__} failed for {event_type}: {result}")


# Global Instance
event_bus = EventManager()
