# ============================================================================
# booking_assistant/services/ai/booking_tools.py
# ============================================================================
"""Function-call tools the conversational agent uses to read slots and manage bookings"""
import json
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from booking_assistant.core.exceptions import (
    AuthExpired,
    BookingAlreadyCancelled,
    BookingAssistantError,
    BookingNotFound,
    BusinessNotFound,
    ConflictError,
    GatewayUnavailable,
    ValidationError,
)
from booking_assistant.services.availability.availability_service import AvailabilityService
from booking_assistant.services.booking.booking_service import BookingService
from booking_assistant.services.calendar.calendar_gateway import CalendarGateway

logger = logging.getLogger(__name__)


class ToolErrorCode:
    SLOT_TAKEN = "SLOT_TAKEN"
    TRY_AGAIN = "TRY_AGAIN"
    RECONNECT_CALENDAR = "RECONNECT_CALENDAR"
    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Order matters: subclasses before their bases
ERROR_CODES = [
    (ConflictError, ToolErrorCode.SLOT_TAKEN),
    (GatewayUnavailable, ToolErrorCode.TRY_AGAIN),
    (AuthExpired, ToolErrorCode.RECONNECT_CALENDAR),
    (ValidationError, ToolErrorCode.INVALID_INPUT),
    (BusinessNotFound, ToolErrorCode.NOT_FOUND),
    (BookingNotFound, ToolErrorCode.NOT_FOUND),
    (BookingAlreadyCancelled, ToolErrorCode.NOT_FOUND),
]

def get_tool_definitions() -> List[Dict]:
    """Define functions the AI can call"""
    return [
        {
            "name": "get_available_slots",
            "description": "Get open appointment slots between two dates (inclusive). Call this before offering times; never invent times that were not returned.",
            "parameters": {
                "type": "object",
                "properties": {
                    "start_date": {
                        "type": "string",
                        "description": "First date in YYYY-MM-DD format (business local date)"
                    },
                    "end_date": {
                        "type": "string",
                        "description": "Last date in YYYY-MM-DD format. Use the same value as start_date for a single day."
                    }
                },
                "required": ["start_date", "end_date"]
            }
        },
        {
            "name": "create_booking",
            "description": "Book one of the slots returned by get_available_slots once the customer confirms. Pass start and end exactly as returned. If the result says SLOT_TAKEN, fetch slots again and offer alternatives.",
            "parameters": {
                "type": "object",
                "properties": {
                    "summary": {"type": "string", "description": "Short description of what is booked"},
                    "start": {"type": "string", "description": "Slot start, ISO-8601 with offset"},
                    "end": {"type": "string", "description": "Slot end, ISO-8601 with offset"},
                    "description": {"type": "string", "description": "Optional notes for the business"},
                    "attendee_email": {"type": "string", "description": "Customer's email, if given"},
                    "attendee_name": {"type": "string", "description": "Customer's name, if given"}
                },
                "required": ["summary", "start", "end"]
            }
        },
        {
            "name": "cancel_booking",
            "description": "Cancel one of the customer's bookings. Use the event_id from list_bookings.",
            "parameters": {
                "type": "object",
                "properties": {
                    "event_id": {"type": "string", "description": "Calendar event ID of the booking"}
                },
                "required": ["event_id"]
            }
        },
        {
            "name": "list_bookings",
            "description": "List the customer's active bookings in this conversation, newest first.",
            "parameters": {
                "type": "object",
                "properties": {}
            }
        }
    ]


def error_result(error: BookingAssistantError) -> Dict[str, Any]:
    code = ToolErrorCode.INTERNAL_ERROR
    for error_type, error_code in ERROR_CODES:
        if isinstance(error, error_type):
            code = error_code
            break

    result = {"success": False, "error_code": code, "message": error.message}
    if isinstance(error, ConflictError):
        result["reason"] = error.reason
    return result


class BookingToolExecutor:
    """Runs one tool call and returns a JSON-serialisable result for the model"""

    def __init__(
            self,
            gateway: CalendarGateway,
            availability_service: Optional[AvailabilityService] = None,
            booking_service: Optional[BookingService] = None
    ):
        self.availability_service = availability_service or AvailabilityService(gateway)
        self.booking_service = booking_service or BookingService(gateway)

    def execute(self, db: Session, name: str, arguments, context: Dict[str, Any]) -> Dict[str, Any]:
        """
        Execute tool `name`.

        `arguments` may be the raw JSON string from the model. Business, conversation,
        sender and platform always come from `context`, never from the model.
        """
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments or "{}")
            except ValueError:
                return {"success": False, "error_code": ToolErrorCode.INVALID_INPUT,
                        "message": "Tool arguments are not valid JSON"}
        arguments = dict(arguments or {})

        handler = getattr(self, f"_tool_{name}", None)
        if handler is None:
            logger.warning(f"Agent called unknown tool {name!r}")
            return {"success": False, "error_code": ToolErrorCode.INVALID_INPUT,
                    "message": f"Unknown tool: {name}"}

        logger.info(f"Executing tool {name} for conversation {context.get('conversation_id')}")
        try:
            return handler(db, arguments, context)
        except BookingAssistantError as e:
            logger.info(f"Tool {name} failed with {e.code}: {e.message}")
            return error_result(e)

    def _tool_get_available_slots(self, db: Session, arguments: dict, context: dict) -> dict:
        slots = self.availability_service.get_available_slots(
            db,
            context["business_id"],
            arguments.get("start_date"),
            arguments.get("end_date"),
            staff_id=context.get("staff_id"),
        )
        return {
            "success": True,
            "total_slots": len(slots),
            "slots": [
                {
                    "start": slot.start.isoformat(),
                    "end": slot.end.isoformat(),
                    "display_time": slot.start.strftime("%A, %B %d at %I:%M %p"),
                    "remaining": slot.remaining,
                }
                for slot in slots
            ],
        }

    def _tool_create_booking(self, db: Session, arguments: dict, context: dict) -> dict:
        result = self.booking_service.create_booking(
            db,
            business_id=context["business_id"],
            conversation_id=context["conversation_id"],
            sender_id=context["sender_id"],
            platform=context["platform"],
            summary=arguments.get("summary"),
            start=arguments.get("start"),
            end=arguments.get("end"),
            description=arguments.get("description"),
            attendee_email=arguments.get("attendee_email"),
            attendee_name=arguments.get("attendee_name"),
            staff_id=context.get("staff_id"),
        )
        return {"success": True, **result.model_dump()}

    def _tool_cancel_booking(self, db: Session, arguments: dict, context: dict) -> dict:
        if not arguments.get("event_id"):
            raise ValidationError("event_id is required")
        result = self.booking_service.cancel_booking(db, context["business_id"], arguments["event_id"])
        return {"success": True, **result}

    def _tool_list_bookings(self, db: Session, arguments: dict, context: dict) -> dict:
        bookings = self.booking_service.list_bookings(
            db,
            conversation_id=context["conversation_id"],
            sender_id=context["sender_id"],
            business_id=context["business_id"],
        )
        return {
            "success": True,
            "bookings": [
                {
                    "event_id": booking.event_id,
                    "summary": booking.summary,
                    "start": booking.to_dict()["start"],
                    "end": booking.to_dict()["end"],
                }
                for booking in bookings
            ],
        }
