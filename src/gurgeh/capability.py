from abc import ABC, abstractmethod

from gurgeh.tools import Tool


class Capability(ABC):
    """A cohesive group of tools backed by one collaborator.

    Capabilities are the unit between a tool and an agent. They group
    related tools that query the same external store and close over it,
    so the agent never sees the store itself.

    Args:
        name: Unique name identifying this capability.

    Example::

        class OpeningBook(Capability):
            def __init__(self, book: Book):
                super().__init__("opening_book")
                self._book = book

            def tools(self) -> list[Tool]:
                book = self._book

                @tool
                def lookup_opening(eco: str):
                    return book.get(eco)

                return [lookup_opening]
    """

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def tools(self) -> list[Tool]:
        """Return the tools this capability provides.

        Called once when an agent resolves its tool registry.
        """
        ...
