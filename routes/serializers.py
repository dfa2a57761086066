from utils.parsing import iso_or_none


def slot_to_dict(slot) -> dict:
    return {
        "id": slot.id,
        "field_id": slot.field_id,
        "date": slot.date.isoformat(),
        "start_time": iso_or_none(slot.start_time),
        "end_time": iso_or_none(slot.end_time),
        "price": slot.price,
        "deposit_amount": slot.deposit_amount,
        "is_reserved": slot.is_reserved,
    }


def field_to_dict(field, city_name=None) -> dict:
    return {
        "id": field.id,
        "owner_id": field.owner_id,
        "city_id": field.city_id,
        "city_name": city_name if city_name is not None else field.city.name,
        "name": field.name,
        "location": field.location,
        "description": field.description,
        "image_url": field.image_url,
        "created_at": field.created_at.isoformat(),
    }


def reservation_to_dict(reservation, with_slot=True) -> dict:
    out = {
        "id": reservation.id,
        "customer_id": reservation.customer_id,
        "availability_id": reservation.availability_id,
        "deposit_paid": reservation.deposit_paid,
        "status": reservation.status,
        "reservation_time": reservation.reservation_time.isoformat(),
        "cancelled_at": iso_or_none(reservation.cancelled_at),
        "cancel_reason": reservation.cancel_reason,
    }
    if with_slot:
        out["customer_email"] = reservation.customer.email
        slot = reservation.slot
        out["slot"] = slot_to_dict(slot)
        out["field"] = {
            "id": slot.field.id,
            "name": slot.field.name,
            "location": slot.field.location,
            "city_name": slot.field.city.name,
        }
    return out
