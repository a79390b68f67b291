"""Main entry point for the application."""

from flask import jsonify
from flask_wtf.csrf import generate_csrf

from slipstream import create_app

app = create_app()


@app.route("/health")
def health_check():
    """Perform a simple health check."""
    return "OK", 200


@app.route("/api/csrf-token")
def csrf_token():
    """Hand API clients a token to send back in the X-CSRFToken header."""
    return jsonify({"csrfToken": generate_csrf()})


if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=27272)  # nosec
