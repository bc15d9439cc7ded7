import shlex
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Generic, List, TypeVar

from repochat.schemas.command import CommandArgs, CommandMetadata

if TYPE_CHECKING:
    from repochat.core.context import BotContext

TArgs = TypeVar('TArgs', bound=CommandArgs)


def split_words(text: str) -> List[str]:
    """Split command text on whitespace, keeping double-quoted groups.

    Apostrophes are plain characters ("l'API"). Unbalanced double quotes
    fall back to a whitespace split.
    """
    lexer = shlex.shlex(text or "", posix=True)
    lexer.whitespace_split = True
    lexer.quotes = '"'
    try:
        return list(lexer)
    except ValueError:
        return (text or "").split()


class Command(Generic[TArgs], ABC):
    """Base class for all slash commands"""

    @property
    @abstractmethod
    def metadata(self) -> CommandMetadata:
        """
        Return metadata about the command.
        Should include:
        - name: str
        - description: str
        - documentation: str (detailed usage instructions and examples)
        - options: the string options, in positional order
        """
        pass

    def convert_args(self, args: Dict[str, Any]) -> TArgs:
        """Convert dictionary arguments to the appropriate type"""
        if not hasattr(self, '_args_type'):
            # Get the concrete type bound to TArgs for this class instance
            self._args_type = self.__class__.__orig_bases__[0].__args__[0]
        return self._args_type(**args)

    def parse_args(self, text: str) -> TArgs:
        """
        Parse the raw argument string of a slash command.

        Double quotes group words. ``name=value`` sets an option by name,
        other tokens fill the options in declaration order. A ``rest``
        option takes all the words left when its turn comes.
        """
        options = self.metadata.options
        names = {option.name for option in options}
        values: Dict[str, str] = {}
        positional = []

        for token in split_words(text):
            name, sep, value = token.partition("=")
            if sep and name in names:
                values[name] = value
            else:
                positional.append(token)

        for option in options:
            if not positional:
                break
            if option.name in values:
                continue
            if option.rest:
                values[option.name] = " ".join(positional)
                positional = []
            else:
                values[option.name] = positional.pop(0)
        if positional:
            raise ValueError(f"Trop d'arguments. Utilisation: {self.metadata.usage}")

        missing = [o.name for o in options if o.required and not values.get(o.name)]
        if missing:
            raise ValueError(
                f"Argument manquant: {', '.join(missing)}. "
                f"Utilisation: {self.metadata.usage}"
            )

        return self.convert_args({k: v for k, v in values.items() if v})

    @abstractmethod
    async def execute(self, args: TArgs, context: "BotContext") -> str:
        """Run the command and return the text to show in the channel"""
        pass
