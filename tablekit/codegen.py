"""Dataclass source generation from a Schema."""

import logging
import re
import typing
from pathlib import Path
from typing import Any, Optional, Set, Union

from .schema import Schema
from .synthesis import check_column_names
from .errors import ConstructionError

logger = logging.getLogger(__name__)


def class_name_for(name: str) -> str:
    """Turn a schema name into a usable class name."""
    ident = re.sub(r'\W', '_', name or '').strip('_') or 'Unnamed'
    return f'T_{ident}' if ident[0].isdigit() else ident


def _type_expr(tp: Any, imports: Set[str]) -> str:
    if tp is Any:
        imports.add('from typing import Any')
        return 'Any'
    # list[int] passes isinstance(..., type) on 3.10; keep its arguments
    if typing.get_origin(tp) is not None:
        for arg in typing.get_args(tp):
            if isinstance(arg, type) or typing.get_origin(arg) is not None:
                _type_expr(arg, imports)
        text = repr(tp)
        if text.startswith('typing.'):
            imports.add('import typing')
        return text
    if isinstance(tp, type):
        if tp.__module__ == 'builtins':
            return tp.__qualname__
        imports.add(f'import {tp.__module__}')
        return f'{tp.__module__}.{tp.__qualname__}'
    imports.add('import typing')
    return repr(tp)


def render_source(schema: Schema, class_name: Optional[str] = None) -> str:
    """Render a module holding one keyword-only dataclass that mirrors the schema."""
    if schema is None:
        raise ConstructionError('schema is required')
    check_column_names(schema.columns)
    imports = {'from dataclasses import dataclass'}
    lines = []
    for col in schema.columns:
        expr = _type_expr(col.type, imports)
        if col.nullable:
            imports.add('from typing import Optional')
            lines.append(f'    {col.name}: Optional[{expr}] = None')
        else:
            lines.append(f'    {col.name}: {expr}')
    cls = class_name or class_name_for(schema.name)
    body = '\n'.join(lines) or '    pass'
    header = sorted(i for i in imports if i.startswith('import ')) + sorted(i for i in imports if i.startswith('from '))
    return (f'"""Generated from schema {schema.name}."""\n\n'
            + '\n'.join(header)
            + f'\n\n\n@dataclass(kw_only=True)\nclass {cls}:\n{body}\n')


def write_source(schema: Schema, directory: Union[str, Path] = '.', path_template: str = '{module}.{cls}.py',
                 module: str = 'generated', class_name: Optional[str] = None) -> Path:
    """Render the schema's dataclass and write it under directory; returns the file path."""
    cls = class_name or class_name_for(schema.name if schema is not None else '')
    source = render_source(schema, cls)
    path = Path(directory) / path_template.format(module=module, cls=cls)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(source, encoding='utf-8')
    logger.info(f'Wrote {cls} source to {path}')
    return path
