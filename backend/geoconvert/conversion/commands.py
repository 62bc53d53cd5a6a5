"""Structured construction of engine instructions.

An instruction has three parts, always serialized in the same order:

    -i <input> [<input> ...] [-<option> <value> ...] -o <output>

The output designator directly follows the ``-o`` token and comes after
every option, since the engine reads anything after the output file as
output arguments.

Example:
    Build the instruction for a reprojected GeoJSON conversion:
        >>> instruction = build_instruction(
        ...     formats.get_format("geojson"),
        ...     ["a.prj", "a.dbf", "a.shp"],
        ...     [models.ConversionOption(models.OptionKey.PROJ, "wgs84")],
        ... )
        >>> str(instruction)
        '-i a.prj a.dbf a.shp -proj wgs84 -o output.geojson'
"""

from __future__ import annotations

import dataclasses
import os
import re
from typing import TYPE_CHECKING

from geoconvert.conversion import errors, models

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

INPUT_FLAG = "-i"
OUTPUT_FLAG = "-o"
DEFAULT_OUTPUT_STEM = "output"

_WHITESPACE = re.compile(r"\s")


def _check_token(token: str, what: str) -> str:
    if not token:
        raise errors.ValidationError(f"{what} must not be empty")
    if _WHITESPACE.search(token):
        raise errors.ValidationError(f"{what} must not contain whitespace: {token!r}")
    if token.startswith("-"):
        raise errors.ValidationError(f"{what} must not start with '-': {token!r}")
    return token


def validate_options(
    options: Iterable[models.ConversionOption],
) -> list[models.ConversionOption]:
    """Re-check options against the engine's allow-list before use.

    Raises:
        ValidationError: If a key is not an OptionKey member or a value
            could not be passed to the engine as a single token.
    """
    validated = []
    for option in options:
        try:
            key = models.OptionKey(option.key)
        except ValueError:
            raise errors.ValidationError(
                f"Unsupported option '{option.key}'"
            ) from None
        value = _check_token(str(option.value), f"Value of option '{key}'")
        validated.append(models.ConversionOption(key, value))
    return validated


@dataclasses.dataclass(frozen=True)
class Instruction:
    inputs: tuple[str, ...]
    options: tuple[models.ConversionOption, ...]
    output: str

    def tokens(self) -> list[str]:
        tokens = [INPUT_FLAG, *self.inputs]
        for option in self.options:
            tokens.extend((f"-{option.key}", option.value))
        tokens.extend((OUTPUT_FLAG, self.output))
        return tokens

    def with_output(self, output: str | os.PathLike[str]) -> Instruction:
        """Copy of this instruction writing to another output path."""
        return dataclasses.replace(self, output=os.fspath(output))

    def __str__(self) -> str:
        return " ".join(self.tokens())


def build_instruction(
    descriptor: models.FormatDescriptor,
    inputs: Sequence[str],
    options: Iterable[models.ConversionOption] = (),
    stem: str = DEFAULT_OUTPUT_STEM,
) -> Instruction:
    """Build the engine instruction for one conversion.

    Args:
        descriptor: Target format; supplies the output file extension.
        inputs: Input file names, already in engine declaration order.
        options: Conversion options, rendered in the given order.
        stem: Base name of the output file.

    Returns:
        The instruction, with the output designator last.

    Raises:
        ValidationError: If there are no inputs, an input name or option
            cannot be passed as a single token, or an option key is unknown.
    """
    if not inputs:
        raise errors.ValidationError("Upload contains no convertible files")
    for name in inputs:
        _check_token(name, "Input filename")
    output = _check_token(f"{stem}.{descriptor.output_extension}", "Output filename")
    return Instruction(
        inputs=tuple(inputs),
        options=tuple(validate_options(options)),
        output=output,
    )
