# booking_assistant/services/calendar/google_calendar_service.py
import json
from datetime import timedelta, datetime, date, tzinfo
from typing import Callable, List, Optional, TypeVar

import httplib2
import requests
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from sqlalchemy.orm import Session
import logging

from booking_assistant.config.redis import RedisKeys
from booking_assistant.config.settings import Settings, get_settings
from booking_assistant.core.exceptions import (
    AuthExpired,
    CalendarNotConnected,
    GatewayRequestRejected,
    GatewayUnavailable,
    ValidationError,
)
from booking_assistant.models.calendar_integration import CalendarIntegration, IntegrationStatus
from booking_assistant.schemas.calendar_events import CalendarEventRequest, CreatedEvent, ExternalCalendarEvent
from booking_assistant.services.calendar.calendar_gateway import CalendarGateway, CalendarIntegrationService
from booking_assistant.services.calendar.refresh_lock import get_refresh_lock
from booking_assistant.utils.datetime_utils import ensure_utc, local_midnight, utcnow, OFFSET_PATTERN
from booking_assistant.utils.encryption import TokenCipher, get_cipher

logger = logging.getLogger(__name__)

T = TypeVar("T")

TOKEN_URI = "https://oauth2.googleapis.com/token"
REVOKE_URI = "https://oauth2.googleapis.com/revoke"
RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded", "quotaExceeded"}


def _http_status(error: HttpError) -> int:
    return int(error.resp.status)


def _http_reason(error: HttpError) -> str:
    """First `errors[].reason` of a Google error body, if present"""
    try:
        body = json.loads(error.content.decode() if isinstance(error.content, bytes) else error.content)
        return body["error"]["errors"][0]["reason"]
    except (ValueError, KeyError, IndexError, TypeError, AttributeError):
        return ""


def _parse_event_time(value: dict, day_zone: tzinfo):
    """(datetime, all_day) from a Google start/end object"""
    if value.get("dateTime"):
        text = value["dateTime"]
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text), False
    return local_midnight(date.fromisoformat(value["date"]), day_zone), True


class GoogleCalendarService(CalendarGateway):
    SCOPES = ['https://www.googleapis.com/auth/calendar']

    def __init__(
            self,
            settings: Settings = None,
            cipher: TokenCipher = None,
            refresh_lock=None,
            service_factory: Callable = None
    ):
        self.settings = settings or get_settings()
        self._cipher = cipher
        self.refresh_lock = refresh_lock or get_refresh_lock(self.settings)
        self.service_factory = service_factory or (
            lambda credentials: build('calendar', 'v3', credentials=credentials, cache_discovery=False)
        )
        self.expiry_skew = timedelta(seconds=self.settings.CALENDAR_TOKEN_EXPIRY_SKEW_SECONDS)

        # OAuth credentials from Google Cloud Console
        self.client_config = {
            "web": {
                "client_id": self.settings.GOOGLE_CLIENT_ID,
                "client_secret": self.settings.GOOGLE_CLIENT_SECRET,
                "redirect_uris": [self.settings.GOOGLE_REDIRECT_URI],
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": TOKEN_URI
            }
        }

    @property
    def cipher(self) -> TokenCipher:
        if self._cipher is None:
            self._cipher = get_cipher()
        return self._cipher

    # ------------------------------------------------------------------
    # OAuth connect flow
    # ------------------------------------------------------------------

    def _flow(self) -> Flow:
        if not self.settings.GOOGLE_CLIENT_ID or not self.settings.GOOGLE_REDIRECT_URI:
            raise ValueError("GOOGLE_CLIENT_ID and GOOGLE_REDIRECT_URI must be configured")
        return Flow.from_client_config(
            self.client_config,
            scopes=self.SCOPES,
            redirect_uri=self.client_config['web']['redirect_uris'][0],
            # authorize and callback run on different Flow instances
            autogenerate_code_verifier=False
        )

    def generate_authorization_url(self, business_id: str, staff_id: Optional[str] = None) -> str:
        """Step 1: OAuth URL for the calendar owner"""
        state = json.dumps({"business_id": business_id, "staff_id": staff_id})

        authorization_url, _ = self._flow().authorization_url(
            access_type='offline',  # Gets refresh token
            include_granted_scopes='true',
            prompt='consent',  # Force consent screen to get refresh token
            state=state
        )

        logger.info(f"Generated Google authorization URL for business {business_id} (staff={staff_id})")
        return authorization_url

    @staticmethod
    def parse_state(state: str) -> dict:
        try:
            payload = json.loads(state)
        except (TypeError, ValueError):
            raise ValidationError("Invalid OAuth state")
        if not isinstance(payload, dict) or not payload.get("business_id"):
            raise ValidationError("Invalid OAuth state")
        return payload

    def handle_oauth_callback(self, db: Session, code: str, state: str) -> CalendarIntegration:
        """Step 2: exchange the authorization code and store encrypted tokens"""
        owner = self.parse_state(state)
        business_id = owner["business_id"]
        staff_id = owner.get("staff_id")

        flow = self._flow()
        try:
            flow.fetch_token(code=code)
        except OAuth2Error as e:
            logger.error(f"Failed to exchange code for tokens (business {business_id}): {e}")
            raise GatewayRequestRejected("Google rejected the authorization code")

        credentials = flow.credentials
        if not credentials.refresh_token:
            raise GatewayRequestRejected("Google did not return a refresh token; reconnect with consent")

        calendar_email = None
        try:
            primary = self.service_factory(credentials).calendarList().get(calendarId='primary').execute()
            calendar_email = primary.get('id')
        except HttpError as e:
            logger.warning(f"Could not read primary calendar for business {business_id}: {e}")

        integration = CalendarIntegrationService.find(db, business_id, staff_id)
        if integration is None:
            integration = CalendarIntegration(business_id=business_id, staff_id=staff_id, provider='google')
            db.add(integration)

        integration.calendar_id = 'primary'
        integration.calendar_email = calendar_email
        integration.access_token_encrypted = self.cipher.encrypt(credentials.token)
        integration.refresh_token_encrypted = self.cipher.encrypt(credentials.refresh_token)
        integration.token_expires_at = ensure_utc(credentials.expiry) if credentials.expiry else None
        integration.integration_status = IntegrationStatus.CONNECTED
        integration.last_refreshed_at = utcnow()
        integration.disconnected_at = None
        db.commit()

        logger.info(f"Connected Google Calendar {calendar_email} for business {business_id} (staff={staff_id})")
        return integration

    def disconnect(self, db: Session, integration: CalendarIntegration) -> None:
        """Revoke the grant (best effort) and clear stored tokens"""
        token = None
        if integration.refresh_token_encrypted:
            token = self.cipher.decrypt(integration.refresh_token_encrypted)

        if token:
            try:
                requests.post(
                    REVOKE_URI,
                    params={'token': token},
                    headers={'content-type': 'application/x-www-form-urlencoded'},
                    timeout=10
                )
            except requests.RequestException as e:
                logger.warning(f"Token revoke failed for integration {integration.id}: {e}")

        integration.mark_disconnected()
        db.commit()
        logger.info(f"Disconnected calendar integration {integration.id}")

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def _needs_refresh(self, integration: CalendarIntegration) -> bool:
        if not integration.access_token_encrypted or integration.token_expires_at is None:
            return True
        return ensure_utc(integration.token_expires_at) <= utcnow() + self.expiry_skew

    def _build_credentials(self, integration: CalendarIntegration, with_access_token: bool = True) -> Credentials:
        return Credentials(
            token=self.cipher.decrypt(integration.access_token_encrypted) if with_access_token else None,
            refresh_token=self.cipher.decrypt(integration.refresh_token_encrypted),
            token_uri=self.client_config['web']['token_uri'],
            client_id=self.client_config['web']['client_id'],
            client_secret=self.client_config['web']['client_secret']
        )

    def _refresh_credentials(self, credentials: Credentials) -> None:
        credentials.refresh(Request())

    def get_valid_credentials(self, db: Session, integration: CalendarIntegration) -> Credentials:
        """Valid credentials, refreshing when the token expires within the skew"""
        if not integration.is_connected:
            raise CalendarNotConnected("Calendar is not connected. Please connect Google Calendar first.")
        if self._needs_refresh(integration):
            return self.refresh_access_token(db, integration)
        return self._build_credentials(integration)

    def refresh_access_token(self, db: Session, integration: CalendarIntegration, force: bool = False) -> Credentials:
        """
        Refresh under the per-owner lock.

        The row is reloaded once the lock is held; if another request refreshed
        it meanwhile, its token is reused instead of refreshing again.
        """
        seen_expiry = integration.token_expires_at
        lock_key = RedisKeys.CALENDAR_REFRESH_LOCK.format(integration_id=integration.id)

        with self.refresh_lock.hold(lock_key):
            db.refresh(integration)
            if not integration.is_connected:
                raise CalendarNotConnected("Calendar is not connected. Please connect Google Calendar first.")

            current_expiry = integration.token_expires_at
            refreshed_elsewhere = current_expiry is not None and (
                    seen_expiry is None or ensure_utc(current_expiry) != ensure_utc(seen_expiry)
            )
            if not self._needs_refresh(integration) and (not force or refreshed_elsewhere):
                logger.debug(f"Reusing token refreshed concurrently for integration {integration.id}")
                return self._build_credentials(integration)

            credentials = self._build_credentials(integration, with_access_token=False)
            old_refresh_token = credentials.refresh_token

            try:
                self._refresh_credentials(credentials)
            except RefreshError as e:
                logger.error(f"Refresh token rejected for integration {integration.id}, disconnecting: {e}")
                integration.mark_disconnected()
                db.commit()
                raise AuthExpired("Google Calendar authorization expired. Please reconnect your calendar.")
            except TransportError as e:
                logger.warning(f"Token refresh transport failure for integration {integration.id}: {e}")
                raise GatewayUnavailable("Could not reach Google to refresh the calendar token")

            integration.access_token_encrypted = self.cipher.encrypt(credentials.token)
            if credentials.refresh_token and credentials.refresh_token != old_refresh_token:
                integration.refresh_token_encrypted = self.cipher.encrypt(credentials.refresh_token)
            # google-auth reports expiry as naive UTC
            integration.token_expires_at = ensure_utc(credentials.expiry) if credentials.expiry else None
            integration.last_refreshed_at = utcnow()
            db.commit()

            logger.info(f"Refreshed access token for integration {integration.id}")
            return credentials

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def _translate(self, error: HttpError) -> Exception:
        status = _http_status(error)
        reason = _http_reason(error)

        if status == 429 or status >= 500 or (status == 403 and reason in RATE_LIMIT_REASONS):
            logger.warning(f"Google Calendar unavailable ({status} {reason})")
            return GatewayUnavailable(f"Google Calendar is temporarily unavailable ({status})")

        logger.error(f"Google Calendar rejected request ({status} {reason}): {error}")
        return GatewayRequestRejected(f"Google Calendar rejected the request ({status})")

    def _execute(self, db: Session, integration: CalendarIntegration, call: Callable[..., T]) -> T:
        """Run `call(service)` with valid credentials; a 401 gets one forced refresh and one retry"""
        credentials = self.get_valid_credentials(db, integration)

        try:
            try:
                return call(self.service_factory(credentials))
            except HttpError as e:
                if _http_status(e) != 401:
                    raise self._translate(e)
                logger.warning(f"Google returned 401 for integration {integration.id}, refreshing and retrying once")

            credentials = self.refresh_access_token(db, integration, force=True)
            try:
                return call(self.service_factory(credentials))
            except HttpError as e:
                if _http_status(e) == 401:
                    logger.error(f"Google still returned 401 after refresh for integration {integration.id}")
                    integration.mark_disconnected()
                    db.commit()
                    raise AuthExpired("Google Calendar authorization expired. Please reconnect your calendar.")
                raise self._translate(e)
        except (OSError, httplib2.HttpLib2Error) as e:
            logger.warning(f"Network failure talking to Google Calendar: {e}")
            raise GatewayUnavailable("Could not reach Google Calendar")

    def list_events(
            self,
            db: Session,
            integration: CalendarIntegration,
            range_start: datetime,
            range_end: datetime,
            time_zone: Optional[tzinfo] = None
    ) -> List[ExternalCalendarEvent]:
        day_zone = time_zone or range_start.tzinfo

        def fetch(service):
            items, page_token = [], None
            while True:
                response = service.events().list(
                    calendarId=integration.calendar_id or 'primary',
                    timeMin=range_start.isoformat(),
                    timeMax=range_end.isoformat(),
                    singleEvents=True,
                    orderBy='startTime',
                    maxResults=250,
                    pageToken=page_token
                ).execute()
                items.extend(response.get('items', []))
                page_token = response.get('nextPageToken')
                if not page_token:
                    return items

        raw_events = self._execute(db, integration, fetch)

        events = []
        for item in raw_events:
            if item.get('status') == 'cancelled':
                continue
            start, all_day = _parse_event_time(item['start'], day_zone)
            end, _ = _parse_event_time(item['end'], day_zone)
            events.append(ExternalCalendarEvent(
                id=item['id'],
                start=start,
                end=end,
                summary=item.get('summary'),
                description=item.get('description'),
                status=item.get('status', 'confirmed'),
                html_link=item.get('htmlLink'),
                private_properties=item.get('extendedProperties', {}).get('private', {}),
                all_day=all_day,
            ))

        logger.debug(f"Fetched {len(events)} events for integration {integration.id} "
                     f"between {range_start.isoformat()} and {range_end.isoformat()}")
        return events

    def insert_event(self, db: Session, integration: CalendarIntegration, event: CalendarEventRequest) -> CreatedEvent:
        start = {'dateTime': event.start.isoformat()}
        end = {'dateTime': event.end.isoformat()}
        # Google only accepts IANA names here; fixed offsets are already in dateTime
        if not OFFSET_PATTERN.match(event.time_zone):
            start['timeZone'] = event.time_zone
            end['timeZone'] = event.time_zone

        body = {
            'summary': event.summary,
            'description': event.description,
            'start': start,
            'end': end,
            'extendedProperties': {'private': event.private_properties},
        }
        if event.attendees:
            body['attendees'] = event.attendees

        created = self._execute(
            db, integration,
            lambda service: service.events().insert(
                calendarId=integration.calendar_id or 'primary',
                body=body
            ).execute()
        )

        logger.info(f"Created Google event {created['id']} for integration {integration.id}")
        return CreatedEvent(event_id=created['id'], event_url=created.get('htmlLink'))

    def delete_event(self, db: Session, integration: CalendarIntegration, event_id: str) -> None:
        def delete(service):
            try:
                service.events().delete(
                    calendarId=integration.calendar_id or 'primary',
                    eventId=event_id
                ).execute()
            except HttpError as e:
                if _http_status(e) in (404, 410):
                    logger.warning(f"Google event {event_id} already deleted")
                    return
                raise

        self._execute(db, integration, delete)
        logger.info(f"Deleted Google event {event_id} for integration {integration.id}")
