"""
Email Service for the FRA Patta platform
========================================
Notifications sent over SMTP (aiosmtplib):
- NGO registration (to the support address)
- NGO approval / rejection
- Assignment created (to the NGO)
- Assignment completed and report submitted (to the ministry creator)

Sends are fire-and-forget: endpoints hand the coroutine to
dispatch_notification() and never wait on it.
"""

import asyncio
import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Any, Coroutine, Iterable, Optional, Set
from datetime import datetime
from html import escape

from fra_patta.core.config import settings
from fra_patta.core.logging_config import logger


class EmailService:
    """Async email service using SMTP"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.start_tls = settings.SMTP_START_TLS
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.support_email = settings.SUPPORT_EMAIL

    @property
    def is_configured(self) -> bool:
        """Check if SMTP credentials are present"""
        return bool(self.smtp_user and self.smtp_password)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if sent. When SMTP is not configured the message is
        logged instead and False is returned.
        """
        if not self.is_configured:
            logger.info(
                f"[Email] SMTP not configured, would send to {to_email}: {subject}",
                extra={"event_type": "email_skipped", "to_email": to_email, "subject": subject}
            )
            return False

        try:
            message = MIMEMultipart("alternative")
            message["From"] = f"{self.from_name} <{self.from_email}>"
            message["To"] = to_email
            message["Subject"] = subject

            if text_content:
                message.attach(MIMEText(text_content, "plain"))
            message.attach(MIMEText(html_content, "html"))

            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=self.start_tls
            )

            logger.info(f"[Email/SMTP] Successfully sent email to {to_email}: {subject}")
            return True

        except Exception as e:
            logger.error(f"[Email/SMTP] Failed to send email to {to_email}: {e}")
            return False

    def _render(self, heading: str, paragraphs: Iterable[str], color: str = "#2f855a") -> str:
        """Wrap pre-escaped paragraphs in the shared HTML layout"""
        body = "\n".join(f"<p>{p}</p>" for p in paragraphs)
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>
                body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .header {{ background: {color}; color: white; padding: 24px; text-align: center; border-radius: 8px 8px 0 0; }}
                .content {{ background: #f9fafb; padding: 24px; border-radius: 0 0 8px 8px; }}
                .footer {{ text-align: center; margin-top: 24px; font-size: 12px; color: #6b7280; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header"><h2>{escape(heading)}</h2></div>
                <div class="content">
                    {body}
                </div>
                <div class="footer">
                    <p>&copy; {datetime.utcnow().year} {escape(self.from_name)}</p>
                </div>
            </div>
        </body>
        </html>
        """

    async def send_ngo_registration_email(self, ngo: Any) -> bool:
        """Tell support that a new NGO is waiting for approval"""
        subject = f"New NGO Registration: {ngo.organization or ngo.name}"
        html_content = self._render("New NGO Registration", [
            f"<strong>Organization:</strong> {escape(ngo.organization or '-')}",
            f"<strong>Contact person:</strong> {escape(ngo.name)}",
            f"<strong>Email:</strong> {escape(ngo.email)}",
            f"<strong>District:</strong> {escape(ngo.district or '-')}",
            f"<strong>Area of operation:</strong> {escape(ngo.area_of_operation or '-')}",
            "Please review and approve the registration from the ministry dashboard.",
        ])
        text_content = (
            f"New NGO registration\n\nOrganization: {ngo.organization or '-'}\n"
            f"Contact: {ngo.name} <{ngo.email}>\nDistrict: {ngo.district or '-'}\n"
        )
        return await self.send_email(self.support_email, subject, html_content, text_content)

    async def send_ngo_approval_email(self, ngo: Any) -> bool:
        subject = "NGO Registration Approved - FRA Patta Management System"
        html_content = self._render("Registration Approved", [
            f"Dear {escape(ngo.name)},",
            f"The registration of <strong>{escape(ngo.organization or ngo.name)}</strong> has been approved.",
            "You can now log in to view and work on your field assignments.",
        ])
        text_content = (
            f"Dear {ngo.name},\n\nYour NGO registration has been approved. "
            "You can now log in to view your assignments.\n"
        )
        return await self.send_email(ngo.email, subject, html_content, text_content)

    async def send_ngo_rejection_email(self, ngo: Any, reason: Optional[str] = None) -> bool:
        subject = "NGO Registration Update - FRA Patta Management System"
        paragraphs = [
            f"Dear {escape(ngo.name)},",
            "We regret to inform you that your NGO registration could not be approved.",
        ]
        if reason:
            paragraphs.append(f"<strong>Reason:</strong> {escape(reason)}")
        paragraphs.append(f"For questions, contact {escape(self.support_email)}.")

        html_content = self._render("Registration Not Approved", paragraphs, color="#c53030")
        text_content = (
            f"Dear {ngo.name},\n\nYour NGO registration could not be approved."
            + (f"\nReason: {reason}" if reason else "")
            + f"\nContact: {self.support_email}\n"
        )
        return await self.send_email(ngo.email, subject, html_content, text_content)

    async def send_assignment_created_email(self, ngo: Any, assignment: Any) -> bool:
        subject = f"New Assignment: {assignment.title}"
        villages = ", ".join(assignment.area_villages or []) or "-"
        html_content = self._render("New Field Assignment", [
            f"Dear {escape(ngo.name)},",
            f"A new assignment has been given to your organization: <strong>{escape(assignment.title)}</strong>",
            f"<strong>District:</strong> {escape(assignment.area_district)}",
            f"<strong>Villages:</strong> {escape(villages)}",
            f"<strong>Priority:</strong> {escape(assignment.priority.value)}",
            f"<strong>Deadline:</strong> {assignment.deadline:%d %b %Y}",
            f"<strong>Instructions:</strong> {escape(assignment.instructions)}",
        ], color="#2b6cb0")
        text_content = (
            f"New assignment: {assignment.title}\nDistrict: {assignment.area_district}\n"
            f"Deadline: {assignment.deadline:%d %b %Y}\n\n{assignment.instructions}\n"
        )
        return await self.send_email(ngo.email, subject, html_content, text_content)

    async def send_assignment_completed_email(self, ministry_user: Any, assignment: Any, ngo: Any) -> bool:
        subject = f"Assignment Completed: {assignment.title}"
        paragraphs = [
            f"<strong>{escape(ngo.organization or ngo.name)}</strong> marked "
            f"<strong>{escape(assignment.title)}</strong> as completed.",
        ]
        if assignment.completion_notes:
            paragraphs.append(f"<strong>Notes:</strong> {escape(assignment.completion_notes)}")
        html_content = self._render("Assignment Completed", paragraphs)
        text_content = f"{ngo.organization or ngo.name} completed the assignment '{assignment.title}'.\n"
        return await self.send_email(ministry_user.email, subject, html_content, text_content)

    async def send_report_submitted_email(self, ministry_user: Any, assignment: Any, ngo: Any) -> bool:
        subject = f"Report Submitted: {assignment.title}"
        report = assignment.report or {}
        html_content = self._render("Field Report Submitted", [
            f"<strong>{escape(ngo.organization or ngo.name)}</strong> submitted the report for "
            f"<strong>{escape(assignment.title)}</strong>.",
            f"<strong>Summary:</strong> {escape(report.get('summary') or '-')}",
            f"<strong>Beneficiaries reached:</strong> {report.get('beneficiaries_reached') or 0}",
            f"<strong>Attachments:</strong> {len(report.get('attachments') or [])}",
        ])
        text_content = (
            f"{ngo.organization or ngo.name} submitted the report for '{assignment.title}'.\n"
            f"Summary: {report.get('summary') or '-'}\n"
        )
        return await self.send_email(ministry_user.email, subject, html_content, text_content)


# Singleton instance
email_service = EmailService()


# Strong references to in-flight notification tasks
_pending_notifications: Set["asyncio.Task[Any]"] = set()


def _on_notification_done(task: "asyncio.Task[Any]") -> None:
    _pending_notifications.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.log_error_with_context(exc, context="notification dispatch")


def dispatch_notification(coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
    """Schedule a send in the background. Failures are logged, never raised."""
    task = asyncio.create_task(coro)
    _pending_notifications.add(task)
    task.add_done_callback(_on_notification_done)
    return task
