from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass(frozen=True)
class CommandSpec:
    program: str
    args: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.program:
            raise ValueError("Command program must not be empty")
        # Accept any sequence, store a tuple
        object.__setattr__(self, "args", tuple(self.args))

    @property
    def argv(self) -> List[str]:
        return [self.program, *self.args]

    def __str__(self) -> str:
        return " ".join(self.argv)


def substitute_template(template: str, filename: str) -> str:
    """Replace ``{}`` with ``filename``, then unescape ``{{`` and ``}}``.

    The placeholder is substituted before unescaping, so ``{{}}`` becomes
    ``{<filename>}``.
    """
    return template.replace("{}", filename).replace("{{", "{").replace("}}", "}")


def parse_command(command: str) -> CommandSpec:
    # Plain whitespace split; quoting is not interpreted
    tokens = command.split()
    if not tokens:
        raise ValueError("Command must not be empty")
    return CommandSpec(tokens[0], tuple(tokens[1:]))


def resolve_command(template: str, filename: str) -> CommandSpec:
    return parse_command(substitute_template(template, filename))
