"""Parser and writer configuration.

Both configurations are pydantic models so that invalid values are
rejected when the object is built rather than half way through a parse
or a write.  Defaults reproduce the behaviour expected by the coverage
tools that consume these files.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024

_LINE_ENDINGS = ("\n", "\r\n")


class ParserConfig(BaseModel):
    """Options controlling :class:`ellang.parser.ExclusionParser`."""

    model_config = ConfigDict(validate_assignment=True)

    strict_mode: bool = Field(
        default=False,
        description="Fail on the first unrecognized line instead of warning",
    )
    validate_checksums: bool = Field(
        default=True,
        description="Warn about scope checksums that are not digits and spaces",
    )
    preserve_comments: bool = Field(
        default=True,
        description="Keep comment lines verbatim on the parse result",
    )
    merge_on_load: bool = Field(
        default=False,
        description="Merge parsed data into the current database instead of replacing it",
    )
    max_file_size: int = Field(
        default=DEFAULT_MAX_FILE_SIZE,
        description="Largest file, in bytes, that parse_file accepts",
        gt=0,
    )


class WriterConfig(BaseModel):
    """Options controlling :class:`ellang.writer.ExclusionWriter`."""

    model_config = ConfigDict(validate_assignment=True)

    include_comments: bool = Field(default=True, description="Emit the file header comment block")
    include_annotations: bool = Field(default=True, description="Emit ANNOTATION lines")
    sort_exclusions: bool = Field(
        default=False,
        description="Sort scopes and exclusion keys instead of keeping insertion order",
    )
    generate_checksums: bool = Field(
        default=True,
        description="Generate a CHECKSUM line for scopes that have none",
    )
    indentation: str = Field(default="", description="Prefix written before every line")
    line_ending: str = Field(default="\n", description="Line terminator, LF or CRLF")
    compact_format: bool = Field(
        default=False,
        description="Omit the blank line written between scopes",
    )

    @field_validator("line_ending")
    @classmethod
    def validate_line_ending(cls, v: str) -> str:
        if v not in _LINE_ENDINGS:
            raise ValueError("line_ending must be '\\n' or '\\r\\n'")
        return v

    @field_validator("indentation")
    @classmethod
    def validate_indentation(cls, v: str) -> str:
        if v.strip(" \t"):
            raise ValueError("indentation may only contain spaces and tabs")
        return v
