from .email import (NotificationSink, SmtpNotificationSink, SmtpSettings,
                    html_to_text)

__all__ = ["NotificationSink", "SmtpNotificationSink", "SmtpSettings", "html_to_text"]
