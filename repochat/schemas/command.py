from typing import List

from pydantic import BaseModel


class CommandOption(BaseModel):
    """A string option accepted by a slash command"""
    name: str
    description: str
    required: bool = False
    # Takes every remaining word of the command text
    rest: bool = False


class CommandMetadata(BaseModel):
    """Metadata about a command"""
    name: str
    description: str
    documentation: str
    options: List[CommandOption] = []

    @property
    def usage(self) -> str:
        parts = [f"/{self.name}"]
        named_only = False
        for option in self.options:
            if named_only:
                label = f"{option.name}=..."
            elif option.rest:
                label = f"{option.name}..."
            else:
                label = option.name
            parts.append(f"<{label}>" if option.required else f"[{label}]")
            # Options after a free-text one can only be given by name
            named_only = named_only or option.rest
        return " ".join(parts)


class CommandArgs(BaseModel):
    """Base class for command arguments"""
    pass
