class DiagramCraftError(ValueError):
    pass


class ProjectNotFoundError(DiagramCraftError):
    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class HistoryNoOpError(DiagramCraftError):
    pass


class NothingToUndoError(HistoryNoOpError):
    def __init__(self) -> None:
        super().__init__("Nothing to undo.")


class NothingToRedoError(HistoryNoOpError):
    def __init__(self) -> None:
        super().__init__("Nothing to redo.")


class HistoryIndexError(DiagramCraftError):
    def __init__(self, index: int, length: int) -> None:
        super().__init__(f"History index out of range: {index} (versions: {length})")
        self.index = index
        self.length = length


class ExportPreconditionError(DiagramCraftError):
    def __init__(self, message: str = "Render diagram first") -> None:
        super().__init__(message)


class RasterExportError(DiagramCraftError):
    pass
