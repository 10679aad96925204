from __future__ import annotations


class MonitoringException(Exception):
    """Base exception for the uptime engine."""

    pass


class MonitorNotFoundError(MonitoringException):
    """Raised when a monitor cannot be found."""

    def __init__(self, monitor_id: int | str):
        self.monitor_id = monitor_id
        super().__init__(f"Monitor {monitor_id} not found")


class IncidentNotFoundError(MonitoringException):
    """Raised when an incident cannot be found."""

    def __init__(self, incident_id: int):
        self.incident_id = incident_id
        super().__init__(f"Incident {incident_id} not found")


class InvalidIncidentTransitionError(MonitoringException):
    """Raised when an operator action is not valid from the incident's status."""

    def __init__(self, incident_id: int, current_status: str, action: str):
        self.incident_id = incident_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} incident {incident_id} in status '{current_status}'"
        )


class SchedulingError(MonitoringException):
    """Raised when the scheduler rejects a registration or trigger."""

    def __init__(self, monitor_id: int, reason: str):
        self.monitor_id = monitor_id
        self.reason = reason
        super().__init__(f"Cannot schedule monitor {monitor_id}: {reason}")


class DuplicateRegistrationError(SchedulingError):
    """Raised when a monitor is registered twice."""

    def __init__(self, monitor_id: int):
        super().__init__(monitor_id, "already registered")


class StorageError(MonitoringException):
    """Raised when the storage layer cannot complete an operation."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Storage operation '{operation}' failed: {reason}")


class AlertDeliveryError(MonitoringException):
    """Raised when a notification cannot be delivered."""

    def __init__(self, channel: str, reason: str, incident_id: int = 0):
        self.incident_id = incident_id
        self.channel = channel
        self.reason = reason
        super().__init__(
            f"Failed to deliver notification for incident {incident_id} "
            f"via {channel}: {reason}"
        )


class TransientDeliveryError(AlertDeliveryError):
    """Delivery failed for a reason worth retrying (network error, 5xx, 429)."""

    pass


class ChannelConfigError(AlertDeliveryError):
    """Channel configuration is unusable; retrying will not help."""

    pass


class WebhookSignatureError(MonitoringException):
    """Raised when a webhook push carries a missing or wrong HMAC signature."""

    def __init__(self, monitor_id: int, reason: str):
        self.monitor_id = monitor_id
        self.reason = reason
        super().__init__(f"Webhook signature rejected for monitor {monitor_id}: {reason}")


class WebhookRejectedError(MonitoringException):
    """Raised when a webhook monitor does not accept pushes (inactive)."""

    def __init__(self, monitor_id: int, reason: str):
        self.monitor_id = monitor_id
        self.reason = reason
        super().__init__(f"Webhook push rejected for monitor {monitor_id}: {reason}")
