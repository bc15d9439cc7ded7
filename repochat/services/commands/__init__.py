from .base import Command
from .factory import CommandFactory
from .repository import (
    FileContentCommand,
    InfoRepoCommand,
    ResumeCommitCommand,
    ResumeLastCommitCommand,
)

# Register all commands
CommandFactory.register(ResumeLastCommitCommand)
CommandFactory.register(ResumeCommitCommand)
CommandFactory.register(InfoRepoCommand)
CommandFactory.register(FileContentCommand)

__all__ = [
    "Command",
    "CommandFactory",
    "FileContentCommand",
    "InfoRepoCommand",
    "ResumeCommitCommand",
    "ResumeLastCommitCommand",
]
