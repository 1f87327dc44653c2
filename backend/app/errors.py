from flask import jsonify
from werkzeug.exceptions import HTTPException

from app.domain.exceptions import DomainError


def register_error_handlers(app):
    @app.errorhandler(DomainError)
    def handle_domain_error(error):
        response = jsonify({
            "error": type(error).__name__,
            "message": error.message,
        })
        response.status_code = error.status_code
        return response

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        response = jsonify({
            "error": error.name,
            "message": error.description,
        })
        response.status_code = error.code
        return response
