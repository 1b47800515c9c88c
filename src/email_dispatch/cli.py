"""CLI commands for email dispatch."""

import json
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from .address import EmailAddress
from .attachment import EmailAttachment
from .config import Settings, load_settings
from .exceptions import EmailDispatchError
from .logging import get_logger, setup_logging
from .models import EmailPriority
from .renderer import Jinja2TemplateRenderer
from .request import EmailRequest, TemplatedEmailRequest
from .sender import EmailSender
from .transports import MockTransport

logger = get_logger(__name__)


def _load(config: Optional[str], env_file: Optional[str]) -> Settings:
    settings = load_settings(env_file=env_file, config_file=config)
    setup_logging(settings=settings)
    return settings


def _addresses(values: Tuple[str, ...]):
    return [EmailAddress(value) for value in values]


def _read_data(path: Optional[str]):
    if not path:
        return {}
    try:
        return json.loads(Path(path).read_text())
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON in {path}: {e}", param_hint="--data") from e


def _create_sender(settings: Settings, dry_run: bool, template_dir: Optional[str] = None) -> EmailSender:
    return EmailSender(
        settings=settings.smtp,
        transport=MockTransport() if dry_run else None,
        renderer=Jinja2TemplateRenderer(template_dir) if template_dir else None,
        max_workers=settings.sender.max_workers,
    )


@click.group()
def main():
    """Email dispatch CLI."""
    pass


@main.command()
@click.option("--to", "to", multiple=True, required=True, help="Recipient address (repeatable)")
@click.option("--cc", multiple=True, help="Cc address (repeatable)")
@click.option("--bcc", multiple=True, help="Bcc address (repeatable)")
@click.option("--from-email", help="Sender address; defaults to the configured sender")
@click.option("--from-name", help="Sender display name")
@click.option("--subject", required=True, help="Subject line")
@click.option("--text", help="Plain text body")
@click.option("--html-file", type=click.Path(exists=True, dir_okay=False), help="HTML body file")
@click.option("--template-dir", type=click.Path(exists=True, file_okay=False), help="Template directory")
@click.option("--template", help="Template id to render instead of --text/--html-file")
@click.option("--data", type=click.Path(exists=True, dir_okay=False), help="Template data (JSON)")
@click.option("--attach", multiple=True, type=click.Path(exists=True, dir_okay=False), help="Attachment path")
@click.option(
    "--priority",
    type=click.Choice([p.value for p in EmailPriority]),
    default=EmailPriority.NORMAL.value,
    help="Email priority",
)
@click.option("--header", multiple=True, help="Custom header as Name:Value (repeatable)")
@click.option("--dry-run", is_flag=True, help="Build the message without sending it")
@click.option("--config", type=click.Path(exists=True), help="Config file path (YAML/JSON)")
@click.option("--env-file", type=click.Path(exists=True), help=".env file path")
def send(
    to, cc, bcc, from_email, from_name, subject, text, html_file, template_dir,
    template, data, attach, priority, header, dry_run, config, env_file,
):
    """Send one email, directly or from a template."""
    try:
        settings = _load(config, env_file)
        sender = _create_sender(settings, dry_run, template_dir)
        common = dict(
            to=_addresses(to),
            subject=subject,
            from_address=EmailAddress(from_email, from_name) if from_email else None,
            priority=EmailPriority(priority),
            max_recipients_per_type=settings.sender.max_recipients_per_type,
        )

        if template:
            if not template_dir:
                raise click.UsageError("--template requires --template-dir")
            request = TemplatedEmailRequest(template_id=template, template_content=_read_data(data), **common)
        else:
            html = Path(html_file).read_text() if html_file else None
            request = EmailRequest(text_content=text, html_content=html, **common)

        try:
            request.add_cc(*_addresses(cc)).add_bcc(*_addresses(bcc))
            for item in header:
                name, sep, value = item.partition(":")
                if not sep:
                    raise click.BadParameter(f"Expected Name:Value, got {item!r}", param_hint="--header")
                request.add_header(name.strip(), value.strip())
            for path in attach:
                request.add_attachment(EmailAttachment.from_file(path))
        except Exception:
            request.close()
            raise

        if template:
            response = sender.send_templated_email(request)
        else:
            response = sender.send_email(request)

        if dry_run and isinstance(sender.transport, MockTransport) and sender.transport.sent_messages:
            click.echo(sender.transport.sent_messages[-1].as_string())

        click.echo(json.dumps(response.to_dict(), indent=2))
        if not response.is_success:
            sys.exit(1)

    except EmailDispatchError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@click.option("--template-dir", required=True, type=click.Path(exists=True, file_okay=False))
@click.option("--template", help="Template id; lists templates when omitted")
@click.option("--data", type=click.Path(exists=True, dir_okay=False), help="Template data (JSON)")
def render(template_dir: str, template: Optional[str], data: Optional[str]):
    """Render a template, or list the templates in a directory."""
    try:
        renderer = Jinja2TemplateRenderer(template_dir)
        if not template:
            templates = renderer.list_templates()
            if not templates:
                click.echo("No templates found")
                return
            click.echo(f"Available templates ({len(templates)}):")
            for name in templates:
                click.echo(f"  - {name}")
            return

        rendered = renderer.render_template(template, _read_data(data))
        if rendered.html_content is not None:
            click.echo("--- html ---")
            click.echo(rendered.html_content)
        if rendered.text_content is not None:
            click.echo("--- text ---")
            click.echo(rendered.text_content)

    except EmailDispatchError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command("check-config")
@click.option("--config", type=click.Path(exists=True), help="Config file path (YAML/JSON)")
@click.option("--env-file", type=click.Path(exists=True), help=".env file path")
def check_config(config: Optional[str], env_file: Optional[str]):
    """Validate SMTP settings without connecting."""
    try:
        settings = _load(config, env_file)
        sender = EmailSender(settings=settings.smtp)
        transport = sender.transport
        click.echo(f"SMTP: {transport.host}:{transport.port} (ssl={transport.use_ssl})")
        if settings.smtp.sender_email:
            click.echo(f"Default sender: {EmailAddress(settings.smtp.sender_email, settings.smtp.sender_name)}")
        else:
            click.echo("Default sender: not configured")
    except EmailDispatchError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
