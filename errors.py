class TransactionValidationError(ValueError):
    pass


class TransactionNotFound(ValueError):
    def __init__(self, message: str = "Transaction not found") -> None:
        super().__init__(message)
