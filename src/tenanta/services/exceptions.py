# tenanta/services/exceptions.py

class ServiceException(Exception):
    """Base exception for all service layer errors."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

class NotFoundError(ServiceException):
    """Raised when a tenant or schema definition does not exist."""
    pass

class QueryValidationError(ServiceException):
    """Raised when console SQL is empty or hits the dangerous-operation deny-list. Never executed."""
    pass

class DDLExecutionError(ServiceException):
    """Raised when a CREATE TABLE statement fails; the reconciliation transaction has been rolled back."""
    def __init__(self, message: str, statement: str = None):
        self.statement = statement
        super().__init__(message)

class TenantConnectionError(ServiceException):
    """Raised when a tenant's database pool or cache client cannot be built or reached."""
    def __init__(self, message: str, tenant_id: str = None):
        self.tenant_id = tenant_id
        super().__init__(message)
