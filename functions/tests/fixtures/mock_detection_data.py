"""Canned detection-pipeline data for unit tests."""

PHOTO_URLS = [f"https://photos.example.com/listing-42/{i}.jpg" for i in range(7)]

# Model output for two classification batches of 5 and 2 photos
CLASSIFIER_BATCH_1 = {
    "living_room": [0, 3],
    "kitchen": [1],
    "bedroom_1": [2, 4],
}
CLASSIFIER_BATCH_2 = {
    "bedroom_1": [0],
    "bathroom_1": [1],
}

LIVING_ROOM_OUTPUT = [
    {"label": "Large L-Shaped Sectional Sofa", "qty": 1, "confidence": 0.93, "cubicFeet": 90},
    {"label": "65 inch TV", "qty": 1, "notes": "wall mounted above fireplace", "size": "65 inch"},
    {"label": "Coffee Table", "qty": 1, "cubicFeet": 10},
]

KITCHEN_OUTPUT = {
    "items": [
        {"label": "Refrigerator", "qty": 1, "cubicFeet": 45, "weight": 250},
        {"label": "Dining Chair", "qty": 6, "cubicFeet": 5},
    ]
}

BEDROOM_OUTPUT = [
    {"label": "Queen Size Platform Bed", "qty": 1, "size": "Queen", "cubicFeet": 50},
    {"label": "Dresser", "qty": 1},
    {"label": "", "qty": 1},
]

SAMPLE_DETECTIONS = [
    {"label": "Sofa", "qty": 1, "room": "living_room", "cubicFeet": 50},
    {"label": "60 inch TV", "qty": 2, "room": "living_room", "size": "60 inch"},
    {"label": "Upright Piano", "qty": 1, "room": "living_room", "cubicFeet": 70, "weight": 500},
    {"label": "Framed Art", "qty": 3, "room": "hallway"},
    {"label": "Queen Bed", "qty": 1, "room": "bedroom_1", "size": "Queen"},
    {"label": "Dresser", "qty": 1, "room": "bedroom_1"},
    {"label": "Mystery Object", "qty": 2, "room": "garage"},
]

# Soft judgments returned by the pricing model
ESTIMATOR_OUTPUT = {
    "recommendedCrew": 3,
    "specialtyItems": [
        {"item": "Upright Piano", "category": "piano", "quantity": 1, "weight": 500},
        {"item": "Hot tub", "category": "spa", "quantity": 1},
    ],
    "elevatorWaitExpected": False,
    "reasoning": "Medium move with one piano.",
    "detectedUpsells": [
        {"id": "tv-boxes", "name": "TV Boxes", "price": 70, "reason": "Two large TVs", "required": True},
        {"id": "appliance-disconnect", "name": "Appliance Disconnect", "price": 75,
         "reason": "Fridge", "required": False},
        {"id": "bad-upsell", "name": "Broken", "price": "NaN"},
    ],
    "hoursStandard": 0.5,
    "baseTotal": 1,
}

MOVE_TIME_REQUEST = {
    "detections": SAMPLE_DETECTIONS,
    "distance": 12.5,
    "travelTime": 30,
    "originType": "house",
    "destinationType": "apartment",
    "stairsOrigin": True,
    "elevatorDestination": True,
    "floorOrigin": 2,
    "floorDestination": 5,
    "parkingOrigin": "driveway",
    "parkingDestination": "street",
}
