from flask import Flask, request, jsonify
from flask_cors import CORS
import compiler  # compiler.py driver
from settings import CompilerOptions

app = Flask(__name__)
CORS(app)  # allow cross-origin requests


def empty_response(errors):
    return {
        "tokens": [],
        "tac": [],
        "optimized_tac": [],
        "errors": errors,
        "diagnostics": [],
        "symbol_table": {},
        "memory": {},
        "options": {},
    }


@app.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"})


@app.route("/compile", methods=["POST"])
def compile_code():
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return jsonify(empty_response(["Invalid request: expected a JSON object"])), 400
    code = data.get("code", "")
    if not isinstance(code, str):
        return jsonify(empty_response(["Invalid request: 'code' must be a string"])), 400
    try:
        options = CompilerOptions.from_mapping(data.get("options"), base=CompilerOptions.from_env())
    except ValueError as e:
        return jsonify(empty_response([f"Invalid options: {e}"])), 400

    try:
        result = compiler.compile_source(code, options)

        # Process tokens to match terminal format
        processed_tokens = [
            {"type": token.type, "value": token.value,
             "lineno": token.lineno, "column": token.column}
            for token in result['tokens']
        ]

        response = {
            "tokens": processed_tokens,
            "tac": [repr(t) for t in result['tac']],
            "optimized_tac": [repr(t) for t in result['optimized_tac']],
            "errors": result['errors'],
            "diagnostics": result['diagnostics'],
            "symbol_table": result['symbol_table'],
            "memory": result['memory'],
            "options": options.to_dict(),
        }
        return jsonify(response)
    except Exception as e:
        app.logger.exception("compile request failed")
        return jsonify(empty_response([f"Unexpected error: {str(e)}"])), 500


if __name__ == "__main__":
    app.run(debug=True)
