"""
Flask web interface for the Block Editor Core.

This provides a REST API over a single Canvas: palette management, block placement
and composition, drag sessions, code generation, import/export and persistence.
Every response uses the envelope ``{'success': bool, 'data' | 'error': ...}``.
"""

import logging
import os
from typing import Any, Optional, Tuple

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS

from block_editor_core.canvas import Canvas
from block_editor_core.config import EditorSettings
from block_editor_core.exceptions import BlockEditorError
from block_editor_core.storage import WorkspaceStore


logger = logging.getLogger(__name__)

editor_bp = Blueprint('block_editor', __name__)


def _canvas() -> Canvas:
    return current_app.config['CANVAS']


def _ok(data: Any = None, status: int = 200):
    return jsonify({'success': True, 'data': data}), status


def _error(message: str, status: int, details: Optional[dict] = None):
    body = {'success': False, 'error': message}
    if details:
        body['details'] = details
    return jsonify(body), status


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _pointer(data: dict) -> Tuple[float, float]:
    try:
        return float(data['x']), float(data['y'])
    except (KeyError, TypeError, ValueError):
        raise BlockEditorError("Pointer requires numeric 'x' and 'y'")


def _number(data: dict, key: str, default: Any = None, cast=float):
    try:
        return cast(data.get(key, default))
    except (TypeError, ValueError):
        raise BlockEditorError(f"Field '{key}' must be numeric", {'field': key})


@editor_bp.errorhandler(BlockEditorError)
def handle_editor_error(e: BlockEditorError):
    logger.info("Rejected request to %s: %s", request.path, e)
    return _error(str(e), 400, e.details)


@editor_bp.errorhandler(Exception)
def handle_unexpected_error(e: Exception):
    logger.exception("Unhandled error on %s", request.path)
    return _error(str(e), 500)


# ---------------------------------------------------------------------------
# Palette
# ---------------------------------------------------------------------------

@editor_bp.route('/api/palette', methods=['GET'])
def get_palette():
    """List palette definitions, optionally filtered by a search query."""
    query = request.args.get('q', '')
    palette = _canvas().palette
    definitions = palette.search(query) if query else palette.definitions
    return _ok([dict(d.to_dict(), displayName=d.display_name) for d in definitions])


@editor_bp.route('/api/palette', methods=['POST'])
def add_palette_definition():
    data = _payload()
    index = _canvas().palette.add_definition(
        label=data.get('label', ''),
        kind=data.get('kind') or data.get('type') or 'command',
        color=data.get('color') or '#4C97FF',
        templates=data.get('templates') or {},
        container_var=data.get('containerVar'),
    )
    return _ok({'index': index, 'definition': _canvas().palette.get(index).to_dict()}, 201)


@editor_bp.route('/api/palette/<int:index>', methods=['DELETE'])
def delete_palette_definition(index: int):
    removed = _canvas().palette.remove_definition(index)
    return _ok({'removed': removed.to_dict()})


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------

@editor_bp.route('/api/blocks', methods=['GET'])
def get_blocks():
    canvas = _canvas()
    return _ok({
        'instances': canvas.serializer.serialize_instances(canvas.registry),
        'roots': [block.id for block in canvas.registry.roots()],
    })


@editor_bp.route('/api/blocks', methods=['POST'])
def create_block():
    """Place a block from a palette index at a workspace position."""
    data = _payload()
    if 'index' not in data:
        raise BlockEditorError("Field 'index' is required")
    index = _number(data, 'index', cast=int)
    position = (_number(data, 'x', 10.0), _number(data, 'y', 10.0))
    canvas = _canvas()
    block_id = canvas.add_block(index, position)
    return _ok(canvas.serializer.serialize_instance(canvas.get_block(block_id)), 201)


@editor_bp.route('/api/blocks/<block_id>', methods=['DELETE'])
def delete_block(block_id: str):
    return _ok({'removed': _canvas().remove_block(block_id)})


@editor_bp.route('/api/blocks/<block_id>/inputs/<varname>', methods=['POST'])
def set_input_value(block_id: str, varname: str):
    canvas = _canvas()
    canvas.set_input_value(block_id, varname, _payload().get('value', ''))
    return _ok(canvas.serializer.serialize_instance(canvas.get_block(block_id)))


@editor_bp.route('/api/blocks/<block_id>/attach', methods=['POST'])
def attach_block(block_id: str):
    """Attach a block to a container body, or to an input slot when 'varname' is given."""
    data = _payload()
    parent_id = data.get('parentId')
    if not parent_id:
        raise BlockEditorError("Field 'parentId' is required")

    canvas = _canvas()
    canvas.move_block(block_id, parent_id, data.get('varname') or None)
    return _ok(canvas.serializer.serialize_instance(canvas.get_block(block_id)))


@editor_bp.route('/api/blocks/<block_id>/detach', methods=['POST'])
def detach_block(block_id: str):
    canvas = _canvas()
    detached = canvas.detach(block_id)
    return _ok({'detached': detached, 'block': canvas.serializer.serialize_instance(canvas.get_block(block_id))})


@editor_bp.route('/api/blocks/<block_id>/release-inputs', methods=['POST'])
def release_inputs(block_id: str):
    return _ok({'released': _canvas().release_inputs(block_id)})


# ---------------------------------------------------------------------------
# Drag sessions
# ---------------------------------------------------------------------------

@editor_bp.route('/api/drag/start', methods=['POST'])
def drag_start():
    """Start dragging a placed block ('blockId') or a palette entry ('paletteIndex')."""
    data = _payload()
    pointer = _pointer(data)
    canvas = _canvas()
    if data.get('paletteIndex') is not None:
        block_id = canvas.start_palette_drag(_number(data, 'paletteIndex', cast=int), pointer)
    elif data.get('blockId'):
        block_id = canvas.start_drag(data['blockId'], pointer).block_id
    else:
        raise BlockEditorError("Either 'blockId' or 'paletteIndex' is required")
    return _ok({'blockId': block_id, 'state': canvas.drag_session.state.value})


@editor_bp.route('/api/drag/move', methods=['POST'])
def drag_move():
    canvas = _canvas()
    canvas.move_drag(_pointer(_payload()))
    block = canvas.get_block(canvas.drag_session.block_id)
    return _ok({'blockId': block.id, 'x': block.position[0], 'y': block.position[1]})


@editor_bp.route('/api/drag/end', methods=['POST'])
def drag_end():
    canvas = _canvas()
    state = canvas.end_drag(_pointer(_payload()))
    session = canvas.last_drag
    target = session.target
    return _ok({
        'blockId': session.block_id,
        'state': state.value,
        'target': {
            'kind': target.kind.value,
            'parentId': target.parent_id,
            'varname': target.varname,
        },
        'removed': session.removed_ids,
    })


# ---------------------------------------------------------------------------
# Code generation, import and export
# ---------------------------------------------------------------------------

@editor_bp.route('/api/generate', methods=['POST'])
def generate_code():
    canvas = _canvas()
    language = _payload().get('language') or canvas.settings.default_language
    return _ok({'language': language, 'code': canvas.generate_code(language)})


@editor_bp.route('/api/export/<variant>', methods=['GET'])
def export_bundle(variant: str):
    return _ok(_canvas().export(variant, request.args.get('language')))


@editor_bp.route('/api/import', methods=['POST'])
def import_bundle():
    payload = request.get_json(silent=True)
    if payload is None:
        payload = request.get_data(as_text=True)
    return _ok(_canvas().import_bundle(payload))


# ---------------------------------------------------------------------------
# Workspace persistence
# ---------------------------------------------------------------------------

@editor_bp.route('/api/workspace/save', methods=['POST'])
def save_workspace():
    return _ok(_canvas().save())


@editor_bp.route('/api/workspace/load', methods=['POST'])
def load_workspace():
    canvas = _canvas()
    loaded = canvas.load()
    return _ok({'loaded': loaded, 'block_count': len(canvas.registry)})


@editor_bp.route('/api/workspace/clear', methods=['POST'])
def clear_workspace():
    _canvas().clear_workspace()
    return _ok({'cleared': True})


@editor_bp.route('/api/canvas/state', methods=['GET'])
def get_canvas_state():
    return _ok(_canvas().get_canvas_state())


def create_app(canvas: Optional[Canvas] = None) -> Flask:
    """Build the Flask app around a canvas, creating a store-backed one by default."""
    app = Flask(__name__)
    CORS(app)
    if canvas is None:
        store = WorkspaceStore()
        canvas = Canvas(EditorSettings.load(store), store)
    app.config['CANVAS'] = canvas
    app.register_blueprint(editor_bp)
    return app


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    host = os.environ.get('BLOCK_EDITOR_HOST', '0.0.0.0')
    port = int(os.environ.get('BLOCK_EDITOR_PORT', '5002'))
    print("Starting Block Editor Web Interface...")
    print(f"Access the interface at: http://localhost:{port}")
    create_app().run(debug=False, host=host, port=port)
