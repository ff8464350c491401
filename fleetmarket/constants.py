"""Option lists shared by the listing forms, filters and analytics."""

ROLES = ("user", "dealer", "admin")

LISTING_KINDS = ("sale", "rent", "plates")
LISTING_STATUSES = ("available", "pending", "sold")
DELETED = "deleted"

AUTOCLIP_STATUSES = ("draft", "under_review", "published", "rejected", "archived")

VEHICLE_COLORS = (
    "Black", "White", "Silver", "Gray", "Red", "Blue", "Brown",
    "Green", "Beige", "Orange", "Gold", "Yellow", "Purple",
)
CATEGORIES = ("Sedan", "SUV", "Truck", "Coupe", "Convertible", "Hatchback", "Wagon")
FUEL_TYPES = ("Benzine", "Diesel", "Hybrid", "Electric", "plugin-hybrid")
TRANSMISSIONS = ("Automatic", "Manual")
DRIVE_TRAINS = ("FWD", "RWD", "AWD", "4WD")
CONDITIONS = ("New", "Used")
SOURCES = ("Company", "GCC", "USA", "Canada", "China", "Europe")
RENTAL_PERIODS = ("daily", "weekly", "monthly")

VEHICLE_FEATURES = (
    "heated_seats", "keyless_entry", "keyless_start", "power_mirrors",
    "power_steering", "power_windows", "backup_camera", "bluetooth",
    "cruise_control", "navigation", "sunroof", "leather_seats",
    "third_row_seats", "parking_sensors", "lane_assist", "blind_spot",
    "apple_carplay", "android_auto", "premium_audio", "remote_start",
)

# Storage buckets and the media kind each accepts
BUCKETS = {
    "cars": "image",
    "logos": "image",
    "autoclips": "video",
    "thumbnails": "image",
}
