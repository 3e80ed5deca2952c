"""Flask app for tablekit command generation, execution and schema inference."""

from flask import Flask, request, jsonify, Response, g
from sqlcmd import SqlCon, CommandExecutor, json_command, create_table
from tablekit import infer_from_records, render_source
from typing import Dict, Any, List
import logging
from config import DB_CONFIG, LOG_LEVEL

app = Flask(__name__)
logger = logging.getLogger(__name__)


def get_db() -> SqlCon:
    """Get or create SqlCon instance in Flask context."""
    if 'db' not in g:
        g.db = SqlCon(DB_CONFIG['conn_str'], audit_db=DB_CONFIG.get('audit_db'), debug=DB_CONFIG.get('debug', False))
    return g.db


def get_payload(required: List[str]) -> Dict[str, Any]:
    """Read the JSON body and check required fields."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValueError('Request body must be a JSON object')
    missing = [k for k in required if k not in payload]
    if missing:
        raise ValueError(f'Missing required fields: {missing}')
    return payload


def resolve_dialect(payload: Dict[str, Any]) -> str:
    """Dialect for SQL generation; executed commands always use the connection's dialect."""
    con = get_db()
    requested = payload.get('dialect')
    if requested is None:
        return con.db
    if payload.get('execute') and requested.lower() != con.db:
        logger.warning(f"Overriding dialect from {requested} to {con.db}")
        return con.db
    return requested


def schema_json(schema) -> Dict[str, Any]:
    return {
        'name': schema.name,
        'columns': [
            {'name': c.name, 'type': getattr(c.type, '__name__', str(c.type)), 'nullable': c.nullable}
            for c in schema.columns
        ]
    }


@app.errorhandler(ValueError)
def handle_value_error(e: ValueError) -> Response:
    """Handle ValueError (validation, conversion, construction) with 400 response."""
    return jsonify({'error': str(e)}), 400


@app.errorhandler(Exception)
def handle_general_error(e: Exception) -> Response:
    """Handle unexpected errors with 500 response."""
    logger.error(f'Server error: {e}')
    return jsonify({'error': 'Internal server error'}), 500


@app.route('/command/<operation>', methods=['POST'])
def command(operation: str):
    """Generate or execute a DML command from a JSON payload."""
    payload = get_payload(['table'])
    cmd = json_command(operation, payload, resolve_dialect(payload))
    if not payload.get('execute', False):
        return jsonify({'sql': cmd.sql, 'params': cmd.params})
    count = CommandExecutor(get_db()).execute(cmd)
    return jsonify({'status': 'success', 'rows_affected': count})


@app.route('/schema/infer', methods=['POST'])
def infer_schema():
    """Infer a schema from a list of records."""
    payload = get_payload(['records'])
    schema = infer_from_records(payload.get('name', 'Inferred'), payload['records'],
                                keep_null_keys=payload.get('keepNullKeys', False))
    return jsonify(schema_json(schema))


@app.route('/schema/source', methods=['POST'])
def schema_source():
    """Generate dataclass source for the schema inferred from records."""
    payload = get_payload(['records'])
    schema = infer_from_records(payload.get('name', 'Inferred'), payload['records'])
    return jsonify({'source': render_source(schema, payload.get('className'))})


@app.route('/table/create', methods=['POST'])
def create_table_endpoint():
    """Generate or execute CREATE TABLE for the schema inferred from records."""
    payload = get_payload(['table', 'records'])
    schema = infer_from_records(payload['table'], payload['records'])
    sql = create_table(schema, resolve_dialect(payload), pk=payload.get('pk'),
                       if_not_exists=payload.get('if_not_exists', True))
    if not payload.get('execute', False):
        return jsonify({'sql': sql})
    get_db().execute(sql)
    return jsonify({'status': 'success'})


@app.teardown_appcontext
def close_db(error):
    """Close SqlCon instance on app context teardown."""
    if 'db' in g:
        g.pop('db').close()


if __name__ == '__main__':
    logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')
    app.run(debug=DB_CONFIG.get('debug', False))
