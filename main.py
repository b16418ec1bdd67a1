"""
Blog Application

This is the main entry point for the blog application. It wires the
content access layer, subscriptions, comments and email services together
and exposes operator commands:

    notify <slug>            announce a published post to all subscribers
    test-email <address>     send a test email through the email function
    stats                    print post and subscriber statistics
    serve-email-function     run the email dispatch function locally
"""

import sys
import argparse
import logging
from typing import Optional

from config.validators import validate_settings, get_config_summary
from utils.logger import get_logger, setup_file_logging
from utils.exceptions import (
    BlogError, ConfigurationError, BackendError, ProviderError, NotFoundError
)
from services.auth_service import AdminAuthService, AdminSession
from services.comment_service import CommentService
from services.email_service import EmailService
from services.engagement_service import EngagementService
from services.post_service import PostService
from services.protocols import NotificationResult
from services.subscription_service import SubscriptionService

# Set up logging
logger = get_logger(__name__)


class BlogApp:
    """
    Main application class for the blog.

    Services share one relational store and one object store; both can be
    injected for testing.
    """

    def __init__(self, store=None, object_store=None, email_service=None, auth=None, validate: bool = True):
        """
        Initialize the blog application.

        Args:
            store: Relational store implementing the data.protocols store interfaces.
            object_store: Object store for images.
            email_service: Client for the email dispatch function.
            auth: Admin authentication service.
            validate: Validate settings before wiring services.
        """
        if validate:
            validate_settings()

        if store is None:
            from data.database import db
            store = db
        if object_store is None:
            from data.storage import storage
            object_store = storage

        self.store = store
        self.auth = auth or AdminAuthService()
        self.email_service = email_service or EmailService(log_store=store)
        self.posts = PostService(store, object_store, auth=self.auth)
        self.comments = CommentService(store)
        self.subscriptions = SubscriptionService(store, email_service=self.email_service)
        self.engagement = EngagementService(self.posts)

    def notify(self, slug: str, test_mode: bool = False) -> Optional[NotificationResult]:
        """
        Announce a published post to every active subscriber.

        Args:
            slug: Slug of a published post.
            test_mode: Log what would be sent without calling the email function.

        Returns:
            NotificationResult, or None in test mode.

        Raises:
            NotFoundError: If no published post has this slug.
            BackendError: If the subscriber snapshot cannot be read.
            ProviderError: If the email function cannot be reached.
        """
        post = self.posts.get_by_slug(slug)
        subscribers = self.subscriptions.get_active_subscribers()

        if test_mode:
            logger.info(f"TEST MODE: Would notify {len(subscribers)} subscribers about '{post.title}'")
            return None

        result = self.email_service.send_new_post_notification(post, subscribers)
        if result.failed:
            logger.warning(f"{result.failed} of {result.total} notifications for '{post.title}' failed")
        return result

    def publish(self, post_id: str, session: AdminSession, notify: bool = True) -> Optional[NotificationResult]:
        """Publish a draft and, optionally, notify subscribers. Notification failures never unpublish."""
        post = self.posts.publish(post_id, session=session)
        if not notify:
            return None
        try:
            return self.notify(post.slug)
        except ProviderError as e:
            logger.error(f"Post '{post.slug}' published but notification failed: {e}")
            return None

    def send_test_email(self, address: str) -> dict:
        return self.email_service.send_test_email(address)

    def stats(self) -> dict:
        """Post and subscriber counts plus the popular posts report."""
        published = self.posts.list_published(page=1, page_size=1).total_count
        return {
            'published_posts': published,
            'active_subscribers': self.subscriptions.count_active(),
            'popular_posts': self.posts.get_popular_posts(),
        }

    def close(self) -> None:
        close = getattr(self.store, 'close', None)
        if close:
            close()


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Blog Application')
    parser.add_argument('--log-file', type=str, default='blog.log', help='Log file path')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO', help='Logging level')

    subparsers = parser.add_subparsers(dest='command', required=True)

    notify_parser = subparsers.add_parser('notify', help='Notify subscribers about a published post')
    notify_parser.add_argument('slug', help='Slug of the published post')
    notify_parser.add_argument('--test', action='store_true', help='Run in test mode without sending')

    test_parser = subparsers.add_parser('test-email', help='Send a test email')
    test_parser.add_argument('address', help='Recipient address')

    subparsers.add_parser('stats', help='Show post and subscriber statistics')

    serve_parser = subparsers.add_parser('serve-email-function', help='Run the email dispatch function')
    serve_parser.add_argument('--host', type=str, default=None, help='Bind address')
    serve_parser.add_argument('--port', type=int, default=None, help='Port')

    return parser.parse_args(argv)


def run_command(args, app: Optional[BlogApp] = None) -> bool:
    """Execute one CLI command. Returns True on full success."""
    if args.command == 'serve-email-function':
        from functions.send_email import run
        run(host=args.host, port=args.port)
        return True

    app = app or BlogApp()
    try:
        if args.command == 'notify':
            result = app.notify(args.slug, test_mode=args.test)
            if result is not None:
                print(f"Sent: {result.successful}  Failed: {result.failed}  Total: {result.total}")
                for outcome in result.details:
                    if not outcome.success:
                        print(f"  FAILED {outcome.email}: {outcome.error}")
                return result.failed == 0
            return True

        if args.command == 'test-email':
            response = app.send_test_email(args.address)
            print(response['message'])
            return True

        if args.command == 'stats':
            stats = app.stats()
            print(f"Published posts: {stats['published_posts']}")
            print(f"Active subscribers: {stats['active_subscribers']}")
            popular = stats['popular_posts']
            if popular is not None and len(popular) > 0:
                print("\nPopular posts:")
                print(popular.to_string(index=False))
            return True

        return False
    finally:
        app.close()


def main(argv=None):
    """Main entry point for the application."""
    # Parse command line arguments
    args = parse_arguments(argv)

    # Set up logging
    log_level = getattr(logging, args.log_level)
    setup_file_logging(args.log_file, log_level)

    logger.info(f"Starting blog application: {args.command}")
    logger.debug(f"Configuration: {get_config_summary()}")

    try:
        success = run_command(args)

        # Report status
        if success:
            logger.info(f"Command '{args.command}' completed successfully")
            exit_code = 0
        else:
            logger.warning(f"Command '{args.command}' completed with errors")
            exit_code = 1

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        exit_code = 1
    except NotFoundError as e:
        logger.error(f"Not found: {e}")
        exit_code = 1
    except BackendError as e:
        logger.error(f"Backend error: {e}", exc_info=True)
        exit_code = 1
    except ProviderError as e:
        logger.error(f"Email provider error: {e}")
        exit_code = 1
    except BlogError as e:
        logger.error(f"Blog error: {e}")
        exit_code = 1
    except Exception as e:
        logger.error(f"Unhandled exception in blog application: {e}", exc_info=True)
        exit_code = 2

    # Log application end
    logger.info(f"Blog application finished with exit code {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
