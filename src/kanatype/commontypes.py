class KanatypeError(Exception):
    pass


class NotInContextError(KanatypeError):
    def __init__(self):
        return super().__init__("Must be inside an appropriate context manager")
