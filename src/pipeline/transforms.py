# ==============================================================================
# Column Schemas and Transform Processes
# ==============================================================================
#
# Typed column schemas and the small set of column actions a transform step
# can run on JSON records.
#
# Actions:
#   - append_string: Append a fixed suffix to a string column
#   - rename_column: Rename a column, keeping its position and type
#   - remove_columns: Drop one or more columns
#
# Usage:
#   schema = Schema.builder().add_column_string("first").build()
#   process = (
#       TransformProcess.builder(schema)
#       .append_string_column_transform("first", "two")
#       .build()
#   )
#   process.execute({"first": "value"})  # -> {"first": "valuetwo"}
#
# ==============================================================================
"""Column schemas and transform processes for transform steps."""

from enum import StrEnum
from typing import Annotated, Any, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from src.errors import ConfigurationError


class _Frozen(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class ColumnType(StrEnum):
    STRING = "String"
    INTEGER = "Integer"
    LONG = "Long"
    FLOAT = "Float"
    DOUBLE = "Double"
    BOOLEAN = "Boolean"


_PYTHON_TYPES: dict[ColumnType, tuple[type, ...]] = {
    ColumnType.STRING: (str,),
    ColumnType.INTEGER: (int,),
    ColumnType.LONG: (int,),
    ColumnType.FLOAT: (int, float),
    ColumnType.DOUBLE: (int, float),
    ColumnType.BOOLEAN: (bool,),
}


class ColumnMeta(_Frozen):
    name: str = Field(..., min_length=1, description="Column name")
    column_type: ColumnType = Field(..., description="Column value type")

    def accepts(self, value: Any) -> bool:
        # bool is an int subclass; keep booleans out of numeric columns
        if isinstance(value, bool) and self.column_type != ColumnType.BOOLEAN:
            return False
        return isinstance(value, _PYTHON_TYPES[self.column_type])


class Schema(_Frozen):
    """Ordered, typed list of columns."""

    columns: List[ColumnMeta] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _unique_names(self) -> "Schema":
        names = [c.name for c in self.columns]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate column names in schema: {duplicates}")
        return self

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def column(self, name: str) -> ColumnMeta:
        for c in self.columns:
            if c.name == name:
                return c
        raise KeyError(name)

    def has_column(self, name: str) -> bool:
        return name in self.column_names

    @classmethod
    def builder(cls) -> "SchemaBuilder":
        return SchemaBuilder()


class SchemaBuilder:
    def __init__(self) -> None:
        self._columns: List[ColumnMeta] = []

    def add_column(self, name: str, column_type: ColumnType) -> "SchemaBuilder":
        self._columns.append(ColumnMeta(name=name, column_type=column_type))
        return self

    def add_column_string(self, *names: str) -> "SchemaBuilder":
        for name in names:
            self.add_column(name, ColumnType.STRING)
        return self

    def add_column_integer(self, *names: str) -> "SchemaBuilder":
        for name in names:
            self.add_column(name, ColumnType.INTEGER)
        return self

    def add_column_double(self, *names: str) -> "SchemaBuilder":
        for name in names:
            self.add_column(name, ColumnType.DOUBLE)
        return self

    def add_column_boolean(self, *names: str) -> "SchemaBuilder":
        for name in names:
            self.add_column(name, ColumnType.BOOLEAN)
        return self

    def build(self) -> Schema:
        try:
            return Schema(columns=self._columns)
        except ValueError as e:
            raise ConfigurationError(f"Invalid schema: {e}") from e


# ========== Actions ========== #
class AppendStringAction(_Frozen):
    type: Literal["append_string"] = "append_string"
    column: str
    to_append: str

    def output_schema(self, schema: Schema) -> Schema:
        _require(schema, self.column, self.type)
        if schema.column(self.column).column_type != ColumnType.STRING:
            raise ConfigurationError(
                f"append_string needs a String column, '{self.column}' is "
                f"{schema.column(self.column).column_type}"
            )
        return schema

    def apply(self, record: dict[str, Any]) -> dict[str, Any]:
        out = dict(record)
        out[self.column] = f"{record[self.column]}{self.to_append}"
        return out


class RenameColumnAction(_Frozen):
    type: Literal["rename_column"] = "rename_column"
    old_name: str
    new_name: str = Field(..., min_length=1)

    def output_schema(self, schema: Schema) -> Schema:
        _require(schema, self.old_name, self.type)
        if self.new_name != self.old_name and schema.has_column(self.new_name):
            raise ConfigurationError(
                f"rename_column target '{self.new_name}' already exists"
            )
        columns = [
            ColumnMeta(name=self.new_name, column_type=c.column_type)
            if c.name == self.old_name
            else c
            for c in schema.columns
        ]
        return Schema(columns=columns)

    def apply(self, record: dict[str, Any]) -> dict[str, Any]:
        return {
            (self.new_name if key == self.old_name else key): value
            for key, value in record.items()
        }


class RemoveColumnsAction(_Frozen):
    type: Literal["remove_columns"] = "remove_columns"
    columns: List[str] = Field(..., min_length=1)

    def output_schema(self, schema: Schema) -> Schema:
        for name in self.columns:
            _require(schema, name, self.type)
        remaining = [c for c in schema.columns if c.name not in self.columns]
        if not remaining:
            raise ConfigurationError("remove_columns would remove every column")
        return Schema(columns=remaining)

    def apply(self, record: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in record.items() if k not in self.columns}


TransformAction = Annotated[
    Union[AppendStringAction, RenameColumnAction, RemoveColumnsAction],
    Field(discriminator="type"),
]


def _require(schema: Schema, name: str, action: str) -> None:
    if not schema.has_column(name):
        raise ConfigurationError(
            f"{action}: column '{name}' is not in the schema",
            context={"columns": schema.column_names},
        )


# ========== Transform Process ========== #
class TransformProcess(_Frozen):
    """An initial schema plus an ordered list of column actions."""

    initial_schema: Schema
    actions: List[TransformAction] = Field(default_factory=list)

    @property
    def final_schema(self) -> Schema:
        schema = self.initial_schema
        for action in self.actions:
            schema = action.output_schema(schema)
        return schema

    def validate_record(self, record: dict[str, Any]) -> None:
        """Raise ValueError if a record does not match the initial schema."""
        missing = [n for n in self.initial_schema.column_names if n not in record]
        if missing:
            raise ValueError(f"Missing columns: {missing}")
        for column in self.initial_schema.columns:
            if not column.accepts(record[column.name]):
                raise ValueError(
                    f"Column '{column.name}' expects {column.column_type.value}, "
                    f"got {type(record[column.name]).__name__}"
                )

    def execute(self, record: dict[str, Any]) -> dict[str, Any]:
        self.validate_record(record)
        out = {name: record[name] for name in self.initial_schema.column_names}
        for action in self.actions:
            out = action.apply(out)
        return out

    @classmethod
    def builder(cls, initial_schema: Schema) -> "TransformProcessBuilder":
        return TransformProcessBuilder(initial_schema)


class TransformProcessBuilder:
    def __init__(self, initial_schema: Schema) -> None:
        self._initial_schema = initial_schema
        self._actions: list = []

    def append_string_column_transform(
        self, column: str, to_append: str
    ) -> "TransformProcessBuilder":
        self._actions.append(AppendStringAction(column=column, to_append=to_append))
        return self

    def rename_column(self, old_name: str, new_name: str) -> "TransformProcessBuilder":
        self._actions.append(RenameColumnAction(old_name=old_name, new_name=new_name))
        return self

    def remove_columns(self, *columns: str) -> "TransformProcessBuilder":
        self._actions.append(RemoveColumnsAction(columns=list(columns)))
        return self

    def build(self) -> TransformProcess:
        process = TransformProcess(
            initial_schema=self._initial_schema, actions=self._actions
        )
        # Walk the actions once so a bad column reference fails here
        _ = process.final_schema
        return process
