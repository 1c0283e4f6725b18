"""Tabular iteration log."""

from collections.abc import Iterable
from typing import Any, List, Optional, Union

import numpy as np
import pandas as pd

from .optimization import OutputOptions


class Outputter:
    """Print the state of a solver as a table, one row per iteration.

    Columns are declared with `add_entry`/`add_entries` and printed once with
    `output_header`. Each row is built with `add_value`/`add_values` and printed with
    `output_state`. Nothing is printed unless `options.active` is True, but the rows
    that were printed can always be recovered with `to_frame`.

    Parameters
    ----------
     options : OutputOptions, optional
        Output settings.

    """

    def __init__(self, options: Optional[OutputOptions] = None) -> None:
        self.options: OutputOptions = OutputOptions() if options is None else options
        self.entries: List[str] = []
        self.values: List[Union[float, int, str]] = []
        self.rows: List[List[Union[float, int, str]]] = []

    def set_options(self, options: OutputOptions) -> None:
        """Update settings."""
        self.options = options

    @property
    def active(self) -> bool:
        """Whether output is enabled."""
        return self.options.active

    def add_entry(self, name: str) -> None:
        """Declare a column."""
        self.entries.append(name)

    def add_entries(
        self, prefix: str, size: int, names: Optional[List[str]] = None
    ) -> None:
        """Declare `size` columns, named after `names` or else `prefix[i]`."""
        if names is not None:
            if len(names) != size:
                raise ValueError(f"Expected {size} names; got {len(names)}.")
            self.entries.extend(names)
        else:
            self.entries.extend(f"{prefix}[{ii}]" for ii in range(size))

    def add_value(self, value: Any) -> None:
        """Append a value to the current row."""
        self.values.append(value)

    def add_values(self, values: Iterable[Any]) -> None:
        """Append several values to the current row."""
        self.values.extend(values)

    def format(self, value: Any) -> str:
        """Format a single cell."""
        width = self.options.width
        if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            return f"{value:>{width}d}"
        if isinstance(value, (float, np.floating)):
            return f"{value:>{width}.{self.options.precision}g}"
        return f"{str(value):>{width}}"

    def output_header(self) -> None:
        """Print the column names."""
        if not self.active:
            return

        line = self.options.separator.join(self.format(e) for e in self.entries)
        print(line)
        print("-" * len(line))

    def output_state(self) -> None:
        """Print the current row and start a new one."""
        if not self.active:
            self.values = []
            return

        if len(self.values) != len(self.entries):
            raise ValueError(
                f"Row has {len(self.values)} values but there are "
                f"{len(self.entries)} columns."
            )

        print(self.options.separator.join(self.format(v) for v in self.values))
        self.rows.append(self.values)
        self.values = []

    def to_frame(self) -> pd.DataFrame:
        """Collect the rows printed so far in a DataFrame."""
        return pd.DataFrame(self.rows, columns=self.entries)
