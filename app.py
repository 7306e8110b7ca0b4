"""
ValueLens: Flask API Server
Thin HTTP adapter over valuelens.postprocess. The active assumptions are
loaded once from the workbook named by VALUELENS_ASSUMPTIONS (defaults when
unset) and can be reloaded without a restart.
"""
import logging
import os
import tempfile
import traceback

from flask import Flask, jsonify, request, send_file

from valuelens.assumptions import build_assumptions, thaw
from valuelens.postprocess import run_postprocess
from valuelens.workbook import load_assumptions, write_assumptions_workbook

logging.basicConfig(level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
                    format='%(asctime)s %(levelname)s %(message)s')

app = Flask(__name__)

STATE = {'assumptions': None, 'source': None}


def _load_state():
    path = os.environ.get('VALUELENS_ASSUMPTIONS')
    STATE['assumptions'] = load_assumptions(path)
    STATE['source'] = path if path and os.path.exists(path) else 'defaults'
    logging.info(f"Assumptions loaded from {STATE['source']}")


def _active_assumptions():
    if STATE['assumptions'] is None:
        _load_state()
    return STATE['assumptions']


def _sanitize_for_json(obj):
    """Thawed assumptions with every mapping key as a string."""
    if isinstance(obj, dict):
        return {str(k): _sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize_for_json(v) for v in obj]
    return obj


# ══════════════════════════════════════════════════════════════
#  ROUTES
# ══════════════════════════════════════════════════════════════

@app.route('/api/postprocess', methods=['POST'])
def api_postprocess():
    try:
        body = request.get_json(force=True, silent=True)
        if not isinstance(body, dict) or not isinstance(body.get('steps'), list):
            return jsonify({'status': 'error', 'message': 'Request body must be an analysis document with "steps"'}), 400
        document = {k: v for k, v in body.items() if k != 'assumptions'}
        overrides = body.get('assumptions')
        a = _active_assumptions()
        if isinstance(overrides, dict) and overrides:
            a = build_assumptions(overrides, base=a)
        return jsonify(run_postprocess(document, a))
    except Exception as e:
        traceback.print_exc()
        return jsonify({'status': 'error', 'message': str(e)}), 500


@app.route('/api/assumptions')
def api_assumptions():
    return jsonify({'source': STATE['source'] or 'defaults',
                    'assumptions': _sanitize_for_json(thaw(_active_assumptions()))})


@app.route('/api/assumptions/reload', methods=['POST'])
def api_assumptions_reload():
    try:
        _load_state()
        return jsonify({'status': 'ok', 'source': STATE['source']})
    except Exception as e:
        traceback.print_exc()
        return jsonify({'status': 'error', 'message': str(e)}), 500


@app.route('/api/assumptions/template')
def api_assumptions_template():
    """Current assumptions as an editable workbook."""
    try:
        path = os.path.join(tempfile.gettempdir(), 'ValueLens_Assumptions.xlsx')
        write_assumptions_workbook(_active_assumptions(), path)
        return send_file(path, as_attachment=True, download_name='ValueLens_Assumptions.xlsx')
    except Exception as e:
        traceback.print_exc()
        return jsonify({'status': 'error', 'message': str(e)}), 500


if __name__ == '__main__':
    app.run(debug=False, host='0.0.0.0', port=int(os.environ.get('PORT', 5000)))
