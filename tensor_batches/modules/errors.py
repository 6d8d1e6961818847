class ShapeMismatch(ValueError):
    """Features and targets disagree on the number of samples."""


class LabelOutOfRange(IndexError):
    """A label does not belong to the dataset's alphabet."""

    def __init__(self, label: int, num_labels: int) -> None:
        super().__init__(f"label {label} out of range (valid range: [0, {num_labels}))")
        self.label = label
        self.num_labels = num_labels
