from typing import Dict, Optional


class AppError(Exception):
    code = 'APP_ERROR'
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None,
                 status_code: Optional[int] = None, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> Dict:
        data = {
            'error': type(self).__name__,
            'code': self.code,
            'message': self.message,
        }
        if self.details:
            data['details'] = self.details
        return data


class ValidationError(AppError):
    code = 'VALIDATION_ERROR'
    status_code = 400


class NotFoundError(AppError):
    code = 'NOT_FOUND'
    status_code = 404

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        message = f"{resource} not found"
        details = {'resource': resource, 'id': resource_id} if resource_id else None
        super().__init__(message, details=details)


class StoreUnavailableError(AppError):
    code = 'STORE_UNAVAILABLE'
    status_code = 503
