"""Application package for the CampusEats campus food-ordering backend.

The FastAPI app lives in `main`; business rules (ordering, RFID
settlement, reviews, group orders, OTP) are in `services` on top of the
SQLModel tables in `models` and the query helpers in `repositories`.
"""
