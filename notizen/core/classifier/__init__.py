"""Rule-based notification classification."""

from notizen.core.classifier.classifier import ClassificationResult, NotificationClassifier

__all__ = ["NotificationClassifier", "ClassificationResult"]
