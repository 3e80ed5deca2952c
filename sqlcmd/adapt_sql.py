"""Rewrite :name bind markers into a DB-API driver's paramstyle."""

import re
from typing import Any, Dict, List, Mapping, Tuple, Union

_rx_bind = re.compile(r'(?<![:\w\\]):([A-Za-z_]\w*)\b(?!:)')

paramstyles = ('named', 'qmark', 'numeric', 'format', 'pyformat')


def adapt_sql(sql: str, params: Mapping[str, Any], paramstyle: str = 'named') -> Tuple[str, Union[Dict[str, Any], List[Any]]]:
    """Adapt SQL and parameters for a PEP 249 paramstyle.

    Only markers naming a supplied parameter are rewritten. Positional styles
    return values in the order their markers appear in the text.
    """
    style = paramstyle.lower()
    if style not in paramstyles:
        raise ValueError(f'Unknown paramstyle: {paramstyle}')
    if style == 'named':
        return sql, dict(params)
    if style in ('format', 'pyformat'):
        sql = sql.replace('%', '%%')
    order = []

    def repl(m: re.Match) -> str:
        name = m.group(1)
        if name not in params:
            return m.group(0)
        if style == 'pyformat':
            return f'%({name})s'
        order.append(name)
        if style == 'qmark':
            return '?'
        if style == 'numeric':
            return f':{len(order)}'
        return '%s'

    out = _rx_bind.sub(repl, sql)
    if style == 'pyformat':
        return out, dict(params)
    return out, [params[n] for n in order]
