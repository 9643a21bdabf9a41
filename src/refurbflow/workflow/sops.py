"""Category standard operating procedures (SOPs) used to seed the step catalog.

Raw dicts in the same shape the DynamoDB catalog table stores them; the
catalog validates them into ``StepDescriptor`` objects.
"""

from __future__ import annotations

from typing import Any

_CONDITION = ["excellent", "good", "fair", "poor"]

# ---------------------------------------------------------------------------
# Phone
# ---------------------------------------------------------------------------

PHONE_SECURITY_PREP: list[dict[str, Any]] = [
    {
        "code": "PHONE_FACTORY_RESET",
        "name": "Factory Reset",
        "type": "CHECKLIST",
        "prompt": "Perform factory reset on the device",
        "help_text": "Settings > General > Reset > Erase All Content and Settings.",
        "required": True,
        "order": 1,
        "checklist_items": [
            "Device powered on successfully",
            "Factory reset initiated from settings",
            "Reset completed - device shows setup screen",
        ],
    },
    {
        "code": "PHONE_ICLOUD_CHECK",
        "name": "iCloud/Google Account Check",
        "type": "CHECKLIST",
        "prompt": "Verify device is not locked to any cloud account",
        "help_text": "iOS: check Activation Lock. Android: check Google FRP. If locked, block the unit.",
        "required": True,
        "order": 2,
        "checklist_items": [
            "No Apple ID / Google Account signed in",
            "Activation Lock / FRP is disabled",
            "Find My iPhone / Find My Device is OFF",
        ],
    },
    {
        "code": "PHONE_MDM_CHECK",
        "name": "MDM/Enterprise Check",
        "type": "CHECKLIST",
        "prompt": "Check for MDM profiles or enterprise enrollment",
        "required": True,
        "order": 3,
        "checklist_items": [
            "No MDM profile present",
            "No enterprise enrollment detected",
            "Device is not supervised/managed",
        ],
    },
    {
        "code": "PHONE_FIRMWARE_UPDATE",
        "name": "Firmware Update",
        "type": "CONFIRMATION",
        "prompt": "Update device to latest stable firmware (if not current)",
        "required": False,
        "order": 4,
    },
]

PHONE_DIAGNOSIS: list[dict[str, Any]] = [
    {
        "code": "PHONE_SCREEN_TEST",
        "name": "Display & Touch Test",
        "type": "INPUT",
        "prompt": "Test screen display and touch functionality",
        "required": True,
        "order": 1,
        "input_schema": {
            "properties": {
                "displayFunctional": {"type": "boolean", "title": "Display powers on and shows image"},
                "touchResponsive": {"type": "boolean", "title": "Touch responds across entire screen"},
                "deadPixels": {"type": "string", "enum": ["none", "few", "many"], "title": "Dead/stuck pixels"},
                "burnIn": {"type": "boolean", "title": "Screen burn-in visible"},
                "screenCondition": {"type": "string", "enum": _CONDITION, "title": "Physical condition"},
            },
            "required": ["displayFunctional", "touchResponsive", "deadPixels", "burnIn"],
        },
    },
    {
        "code": "PHONE_BATTERY_TEST",
        "name": "Battery Health Test",
        "type": "MEASUREMENT",
        "prompt": "Check battery health and capacity",
        "required": True,
        "order": 2,
        "input_schema": {
            "properties": {
                "batteryHealth": {"type": "number", "minimum": 0, "maximum": 100, "title": "Battery Health %"},
                "cycleCount": {"type": "integer", "minimum": 0, "title": "Charge Cycle Count"},
                "batterySwelling": {"type": "boolean", "title": "Battery swelling detected"},
                "holdsCharge": {"type": "boolean", "title": "Battery holds charge normally"},
            },
            "required": ["batteryHealth", "batterySwelling", "holdsCharge"],
        },
    },
    {
        "code": "PHONE_CAMERA_TEST",
        "name": "Camera Test",
        "type": "CHECKLIST",
        "prompt": "Test all camera functions",
        "required": True,
        "order": 3,
        "checklist_items": [
            "Front camera captures clear image",
            "Rear camera captures clear image",
            "Flash fires correctly",
            "Autofocus works properly",
        ],
    },
    {
        "code": "PHONE_DEFECT_PHOTOS",
        "name": "Defect Photos",
        "type": "PHOTO",
        "prompt": "Photograph any physical defects",
        "required": False,
        "order": 4,
        "photo_config": {"min_photos": 1, "max_photos": 6, "photo_types": ["DEFECT", "SERIAL"]},
    },
]

PHONE_REPAIR: list[dict[str, Any]] = [
    {
        "code": "PHONE_REPAIR_ACTIONS",
        "name": "Repair Actions",
        "type": "CHECKLIST",
        "prompt": "Perform the repairs identified during diagnosis",
        "required": True,
        "order": 1,
        "checklist_items": [
            "All diagnosed defects addressed",
            "Replacement parts seated and secured",
            "Device reassembled with all screws",
        ],
    },
    {
        "code": "PHONE_REPAIR_PHOTOS",
        "name": "After-Repair Photos",
        "type": "PHOTO",
        "prompt": "Photograph the repaired areas",
        "required": False,
        "order": 2,
        "photo_config": {"min_photos": 1, "max_photos": 6, "photo_types": ["AFTER"]},
    },
]

PHONE_FINAL_TEST: list[dict[str, Any]] = [
    {
        "code": "PHONE_FINAL_FUNCTION",
        "name": "Final Functionality Check",
        "type": "CHECKLIST",
        "prompt": "Verify all repairs completed and device fully functional",
        "required": True,
        "order": 1,
        "checklist_items": [
            "All diagnosed issues have been repaired",
            "Device boots normally without errors",
            "All hardware components tested and working",
            "No unexpected behavior observed",
        ],
    },
    {
        "code": "PHONE_COSMETIC_GRADE",
        "name": "Cosmetic Grading",
        "type": "INPUT",
        "prompt": "Assign cosmetic grade based on physical condition",
        "help_text": "A = Like new, B = Minor wear, C = Visible wear, no cracks",
        "required": True,
        "order": 2,
        "input_schema": {
            "properties": {
                "screenCondition": {"type": "string", "enum": _CONDITION, "title": "Screen condition"},
                "bodyCondition": {"type": "string", "enum": _CONDITION, "title": "Body/frame condition"},
                "overallGrade": {"type": "string", "enum": ["A", "B", "C"], "title": "Overall cosmetic grade"},
            },
            "required": ["screenCondition", "bodyCondition", "overallGrade"],
        },
    },
]

# ---------------------------------------------------------------------------
# Laptop
# ---------------------------------------------------------------------------

LAPTOP_SECURITY_PREP: list[dict[str, Any]] = [
    {
        "code": "LAPTOP_BIOS_RESET",
        "name": "BIOS/UEFI Reset",
        "type": "CHECKLIST",
        "prompt": "Reset BIOS to factory defaults and check for passwords",
        "required": True,
        "order": 1,
        "checklist_items": [
            "BIOS accessible (no password lock)",
            "BIOS reset to factory defaults",
            "Secure Boot configured appropriately",
            "Boot order set correctly",
        ],
    },
    {
        "code": "LAPTOP_SECURE_ERASE",
        "name": "Secure Disk Erase",
        "type": "CONFIRMATION",
        "prompt": "Perform secure erase of all storage devices",
        "required": True,
        "order": 2,
    },
    {
        "code": "LAPTOP_OS_INSTALL",
        "name": "OS Installation",
        "type": "CHECKLIST",
        "prompt": "Install clean operating system",
        "required": True,
        "order": 3,
        "checklist_items": [
            "Clean OS installed",
            "All OS updates applied",
            "Device drivers installed",
            "No user accounts created (OOBE ready)",
        ],
    },
]

LAPTOP_DIAGNOSIS: list[dict[str, Any]] = [
    {
        "code": "LAPTOP_DISPLAY_TEST",
        "name": "Display Test",
        "type": "INPUT",
        "prompt": "Test display quality and functionality",
        "required": True,
        "order": 1,
        "input_schema": {
            "properties": {
                "displayWorks": {"type": "boolean", "title": "Display powers on"},
                "deadPixels": {"type": "string", "enum": ["none", "few", "many"], "title": "Dead pixels"},
                "backlightUniform": {"type": "boolean", "title": "Backlight uniform (no bleeding)"},
                "hingeCondition": {"type": "string", "enum": _CONDITION, "title": "Hinge condition"},
            },
            "required": ["displayWorks", "deadPixels", "backlightUniform"],
        },
    },
    {
        "code": "LAPTOP_KEYBOARD_TEST",
        "name": "Keyboard Test",
        "type": "CHECKLIST",
        "prompt": "Test all keyboard keys and backlight",
        "required": True,
        "order": 2,
        "checklist_items": [
            "All keys register correctly",
            "No stuck or unresponsive keys",
            "Function keys work properly",
        ],
    },
    {
        "code": "LAPTOP_BATTERY_TEST",
        "name": "Battery Test",
        "type": "MEASUREMENT",
        "prompt": "Test battery health and capacity",
        "required": True,
        "order": 3,
        "input_schema": {
            "properties": {
                "batteryHealth": {"type": "number", "minimum": 0, "maximum": 100, "title": "Battery Health %"},
                "cycleCount": {"type": "integer", "minimum": 0, "title": "Cycle Count"},
                "chargesNormally": {"type": "boolean", "title": "Charges normally"},
            },
            "required": ["batteryHealth", "chargesNormally"],
        },
    },
    {
        "code": "LAPTOP_THERMAL_TEST",
        "name": "Thermal Test",
        "type": "MEASUREMENT",
        "prompt": "Check thermal performance under load",
        "required": True,
        "order": 4,
        "input_schema": {
            "properties": {
                "idleTemp": {"type": "number", "title": "Idle CPU Temp (C)"},
                "loadTemp": {"type": "number", "title": "Load CPU Temp (C)"},
                "fanWorks": {"type": "boolean", "title": "Fan operates correctly"},
                "thermalThrottling": {"type": "boolean", "title": "Thermal throttling observed"},
            },
            "required": ["fanWorks", "thermalThrottling"],
        },
    },
]

LAPTOP_REPAIR: list[dict[str, Any]] = [
    {
        "code": "LAPTOP_REPAIR_ACTIONS",
        "name": "Repair Actions",
        "type": "CHECKLIST",
        "prompt": "Perform the repairs identified during diagnosis",
        "required": True,
        "order": 1,
        "checklist_items": [
            "All diagnosed defects addressed",
            "Thermal paste replaced if chassis opened",
            "Bottom cover reinstalled with all screws",
        ],
    },
]

LAPTOP_FINAL_TEST: list[dict[str, Any]] = [
    {
        "code": "LAPTOP_STRESS_TEST",
        "name": "Stress Test",
        "type": "CONFIRMATION",
        "prompt": "Run 30-minute stress test to verify stability",
        "required": True,
        "order": 1,
    },
    {
        "code": "LAPTOP_COSMETIC_GRADE",
        "name": "Cosmetic Grading",
        "type": "INPUT",
        "prompt": "Assign cosmetic grade",
        "required": True,
        "order": 2,
        "input_schema": {
            "properties": {
                "lidCondition": {"type": "string", "enum": _CONDITION, "title": "Lid/cover condition"},
                "palmRestCondition": {"type": "string", "enum": _CONDITION, "title": "Palm rest condition"},
                "overallGrade": {"type": "string", "enum": ["A", "B", "C"], "title": "Overall grade"},
            },
            "required": ["lidCondition", "palmRestCondition", "overallGrade"],
        },
    },
]

# ---------------------------------------------------------------------------
# Generic
# ---------------------------------------------------------------------------

GENERIC_SECURITY_PREP: list[dict[str, Any]] = [
    {
        "code": "GENERIC_FACTORY_RESET",
        "name": "Factory Reset",
        "type": "CONFIRMATION",
        "prompt": "Perform factory reset on the device",
        "required": True,
        "order": 1,
    },
    {
        "code": "GENERIC_ACCOUNT_CHECK",
        "name": "Account Removal",
        "type": "CHECKLIST",
        "prompt": "Verify no user accounts remain on device",
        "required": True,
        "order": 2,
        "checklist_items": [
            "No user accounts signed in",
            "Device ready for new user setup",
        ],
    },
]

GENERIC_DIAGNOSIS: list[dict[str, Any]] = [
    {
        "code": "GENERIC_POWER_TEST",
        "name": "Power Test",
        "type": "CHECKLIST",
        "prompt": "Verify device powers on correctly",
        "required": True,
        "order": 1,
        "checklist_items": [
            "Device powers on",
            "No error messages on boot",
            "Device reaches operational state",
        ],
    },
    {
        "code": "GENERIC_FUNCTION_TEST",
        "name": "Function Test",
        "type": "CHECKLIST",
        "prompt": "Test primary device functions",
        "required": True,
        "order": 2,
        "checklist_items": [
            "Primary function works correctly",
            "Secondary functions work correctly",
            "No obvious defects observed",
        ],
    },
]

GENERIC_REPAIR: list[dict[str, Any]] = [
    {
        "code": "GENERIC_REPAIR_DONE",
        "name": "Repair Complete",
        "type": "CONFIRMATION",
        "prompt": "Confirm all identified defects were repaired",
        "required": True,
        "order": 1,
    },
]

GENERIC_FINAL_TEST: list[dict[str, Any]] = [
    {
        "code": "GENERIC_FINAL_CHECK",
        "name": "Final Verification",
        "type": "CONFIRMATION",
        "prompt": "Verify all repairs complete and device functional",
        "required": True,
        "order": 1,
    },
    {
        "code": "GENERIC_COSMETIC_GRADE",
        "name": "Cosmetic Grading",
        "type": "INPUT",
        "prompt": "Assign cosmetic grade",
        "required": True,
        "order": 2,
        "input_schema": {
            "properties": {
                "overallGrade": {"type": "string", "enum": ["A", "B", "C"], "title": "Overall grade"},
            },
            "required": ["overallGrade"],
        },
    },
]

# ---------------------------------------------------------------------------
# SOP maps: SOP name -> stage -> raw steps
# ---------------------------------------------------------------------------

SOPS: dict[str, dict[str, list[dict[str, Any]]]] = {
    "PHONE": {
        "IN_PROGRESS": PHONE_SECURITY_PREP,
        "DIAGNOSED": PHONE_DIAGNOSIS,
        "REPAIR_IN_PROGRESS": PHONE_REPAIR,
        "FINAL_TEST_IN_PROGRESS": PHONE_FINAL_TEST,
    },
    "LAPTOP": {
        "IN_PROGRESS": LAPTOP_SECURITY_PREP,
        "DIAGNOSED": LAPTOP_DIAGNOSIS,
        "REPAIR_IN_PROGRESS": LAPTOP_REPAIR,
        "FINAL_TEST_IN_PROGRESS": LAPTOP_FINAL_TEST,
    },
    "GENERIC": {
        "IN_PROGRESS": GENERIC_SECURITY_PREP,
        "DIAGNOSED": GENERIC_DIAGNOSIS,
        "REPAIR_IN_PROGRESS": GENERIC_REPAIR,
        "FINAL_TEST_IN_PROGRESS": GENERIC_FINAL_TEST,
    },
}

# Category -> SOP name. Categories not listed use GENERIC.
CATEGORY_SOP: dict[str, str] = {
    "PHONE": "PHONE",
    "TABLET": "PHONE",
    "WEARABLE": "PHONE",
    "LAPTOP": "LAPTOP",
    "DESKTOP": "LAPTOP",
}


def sop_name_for(category: str) -> str:
    return CATEGORY_SOP.get(category, "GENERIC")
