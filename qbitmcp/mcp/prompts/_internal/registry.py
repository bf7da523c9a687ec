"""
Prompts Registry - Decorator and storage for MCP prompts.

Provides @prompt decorator and registry for prompt discovery.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Set

from ...logger import get_logger
from ...utils import validators as utils

logger = get_logger("qbitmcp-prompts-registry")


@dataclass
class PromptArgument:
    """Prompt argument definition for MCP."""

    name: str
    description: str = ""
    required: bool = True

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "required": self.required,
        }


@dataclass
class PromptRegistration:
    """Prompt registration entry."""

    name: str
    handler: Callable[[dict], dict]  # (arguments) -> {"description", "messages"}
    description: Optional[str] = None
    arguments: List[PromptArgument] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description or "",
            "arguments": [arg.to_dict() for arg in self.arguments],
        }


# Internal registry populated by @prompt decorator
_prompt_registry: List[PromptRegistration] = []
_registered_names: Set[str] = set()


def _first_paragraph(doc: Optional[str]) -> str:
    if not doc:
        return ""
    desc_lines = []
    for line in doc.strip().split("\n"):
        stripped = line.strip()
        if stripped == "":
            break
        desc_lines.append(stripped)
    return " ".join(desc_lines)


def prompt(
    name: Optional[str] = None,
    description: Optional[str] = None,
    arguments: Sequence[PromptArgument] = (),
) -> Callable:
    """
    Decorator to register an MCP prompt.

    Prompts are synchronous functions that receive the raw arguments object
    from prompts/get and return {"description": str, "messages": [...]}.
    They are pure templates and never touch the backend.

    The prompt name defaults to the function name; the description defaults
    to the first paragraph of the docstring. Arguments are declared
    explicitly so their listing order is stable.

    Example:
        @prompt(
            arguments=[PromptArgument("instance", "Instance name (optional)", required=False)],
        )
        def analyze_disk_space(args: dict) -> dict:
            '''Check if there is enough disk space for current downloads'''
            return {"description": "...", "messages": [...]}
    """

    def decorator(func):
        is_valid = (
            utils.validate_callable(func, "prompt", logger)
            and utils.validate_has_name(func, "prompt", logger)
            and utils.check_docstring(func, logger)
        )
        if not is_valid:
            return func

        prompt_name = name or func.__name__

        # Check for duplicate name
        if prompt_name in _registered_names:
            logger.error(
                "Prompt '%s' is already registered. Duplicate ignored.", prompt_name
            )
            return func

        _prompt_registry.append(
            PromptRegistration(
                name=prompt_name,
                handler=func,
                description=description or _first_paragraph(func.__doc__),
                arguments=list(arguments),
            )
        )
        _registered_names.add(prompt_name)
        logger.debug("Registered prompt: %s", prompt_name)
        return func

    return decorator


def iter_prompts() -> List[PromptRegistration]:
    """Return a snapshot of all registered prompts."""
    return list(_prompt_registry)


def clear_registry() -> None:
    """Clear all registered prompts.

    Used for testing to prevent stale registrations.
    """
    _prompt_registry.clear()
    _registered_names.clear()
    logger.debug("Prompt registry cleared")


__all__ = [
    "prompt",
    "iter_prompts",
    "clear_registry",
    "PromptRegistration",
    "PromptArgument",
]
