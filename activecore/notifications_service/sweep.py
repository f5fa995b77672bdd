"""
Inactive Member Sweep

Emails active members who have not checked in recently and runs that sweep
on a background daemon thread.
"""

import os
import logging
import threading
from datetime import datetime
from dotenv import load_dotenv

from activecore.database.db_connection import get_db
from activecore.auth_service.utils import is_valid_email
from activecore.notifications_service import mailer

load_dotenv()

logger = logging.getLogger(__name__)

INACTIVE_NOTIFY_DAYS = int(os.getenv("INACTIVE_NOTIFY_DAYS", "3"))
DAILY_SECONDS = 24 * 60 * 60
REMINDER_TYPE = "absent_reminder"

REMINDER_SUBJECT = "We've missed you at ActiveCore, come back!"


def reminder_html(first_name, last_check_in):
    if last_check_in:
        when = last_check_in.strftime("%B %d, %Y") if isinstance(last_check_in, datetime) else str(last_check_in)
        last_visit = f"Your last visit was on {when}."
    else:
        last_visit = "We haven't seen you yet. Start your journey with us!"

    return f"""
        <p>Hi {first_name or 'Member'},</p>
        <p>{last_visit}</p>
        <p>We noticed you haven't visited the gym in a while. We'd love to see you back!</p>
        <ul>
          <li>Book a quick orientation with our trainer</li>
          <li>Try a refreshed workout plan</li>
          <li>Bring a friend and get motivated together</li>
        </ul>
        <p>If there's anything we can help with, just reply to this email.</p>
        <p>ActiveCore</p>
    """


def notify_inactive_members(threshold_days=INACTIVE_NOTIFY_DAYS):
    """
    Email every active member whose last check-in is at least `threshold_days` old.

    Members with no check-in at all are included. Invalid addresses are skipped,
    and so is anyone already reminded within the same window. Each sent
    reminder is recorded in notification_logs.

    Returns:
        dict: {"success": bool, "notified": int} plus "message" when skipped
    """
    if not mailer.smtp_configured():
        logger.warning("SMTP not configured; skipping inactive member reminders")
        return {"success": False, "notified": 0, "message": "SMTP not configured"}

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT u.id, u.email, u.first_name, MAX(a.check_in_time) AS last_check_in
                FROM users u
                LEFT JOIN attendance a ON a.user_id = u.id
                WHERE u.role = 'member' AND u.status = 'active'
                GROUP BY u.id
                HAVING MAX(a.check_in_time) IS NULL
                    OR MAX(a.check_in_time)::date <= CURRENT_DATE - %s::int;
                """,
                (threshold_days,),
            )
            members = cur.fetchall()

            if not members:
                logger.info(f"No inactive members for threshold {threshold_days} day(s)")
                return {"success": True, "notified": 0}

            logger.info(f"Found {len(members)} inactive member(s); sending reminders")
            notified = 0

            for member in members:
                if not is_valid_email(member["email"]):
                    logger.warning(f"Skipping invalid email for user {member['id']}")
                    continue

                cur.execute(
                    """
                    SELECT id FROM notification_logs
                    WHERE user_id = %s AND type = %s
                      AND created_at >= NOW() - (%s * INTERVAL '1 day')
                    LIMIT 1;
                    """,
                    (member["id"], REMINDER_TYPE, threshold_days),
                )
                if cur.fetchone():
                    continue

                html = reminder_html(member["first_name"], member["last_check_in"])
                if not mailer.send_email(member["email"], REMINDER_SUBJECT, html):
                    continue

                cur.execute(
                    "INSERT INTO notification_logs (user_id, type, created_at) VALUES (%s, %s, NOW());",
                    (member["id"], REMINDER_TYPE),
                )
                conn.commit()
                notified += 1

    logger.info(f"Inactive member sweep done: {notified} reminder(s) sent")
    return {"success": True, "notified": notified}


def _run_scheduler(stop_event, threshold_days, interval, initial_delay):
    if stop_event.wait(initial_delay):
        return

    while True:
        try:
            notify_inactive_members(threshold_days)
        except Exception as e:
            logger.error(f"Scheduled inactive member sweep failed: {e}", exc_info=True)

        if stop_event.wait(interval):
            break

    logger.info("Notification scheduler stopped")


def start_notification_scheduler(threshold_days=INACTIVE_NOTIFY_DAYS, interval=DAILY_SECONDS,
                                 initial_delay=5, stop_event=None):
    """
    Run the sweep shortly after startup, then once every `interval` seconds.

    Setting `stop_event` ends the loop at its next wait.

    Returns:
        threading.Thread: the started daemon thread
    """
    stop_event = stop_event or threading.Event()
    thread = threading.Thread(
        target=_run_scheduler,
        args=(stop_event, threshold_days, interval, initial_delay),
        name="notification-scheduler",
        daemon=True,
    )
    thread.start()
    logger.info(f"Notification scheduler started (every {interval}s, threshold {threshold_days} day(s))")
    return thread
