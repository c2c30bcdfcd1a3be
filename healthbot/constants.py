from __future__ import annotations

BOT_NAME = "Dr.SwasthBot 🇮🇳"

# Callback data carried by inline buttons.
BEGIN_SCREENING = "screen_health"
GENDER_PREFIX = "gender_"
BP_KNOWN = "bp_yes"
BP_UNKNOWN = "bp_no"
SYMPTOM_YES = "symptom_yes"
SYMPTOM_NO = "symptom_no"

BP_NOT_KNOWN = "Not known"
SKIP_TOKEN = "skip"
NO_THANKS = "no, thanks"
SHARE_LOCATION_LABEL = "📍 Share Location"
NO_THANKS_LABEL = "No, thanks"

NO_INFO_FOUND = "No relevant info found."
SEARCH_RESULT_LIMIT = 5
SEARCHABLE_FIELDS = ["Symptom", "Possible Diseases"]

MAX_FACILITIES = 5

WELCOME_TEXT = (
    f"👋 Hi! I am {BOT_NAME}, your friendly health assistant. "
    "Ready to begin a Health Risk screening for you or your loved ones?"
)
START_BUTTON_LABEL = "Start Health Screening"
START_HINT = "Please type /start to begin the Health screening."

ASK_AGE_TEXT = "🔢 How old are you? (Please enter your age in years):"
ASK_GENDER_TEXT = "🚻 Please select your gender:"
ASK_WEIGHT_TEXT = "⚖️ Please enter your weight (in kg):"
ASK_HEIGHT_TEXT = "📏 Please enter your height (in cm):"
ASK_BP_KNOW_TEXT = "🩸 Do you know your blood pressure? (If not, that's okay!)"
ASK_BP_VALUE_TEXT = "Please enter your blood pressure as systolic/diastolic (e.g., 120/80):"
ASK_FREE_TEXT = "✍️ Please type any other symptoms or health concerns you have (or type 'Skip' if none):"

INVALID_AGE_TEXT = "Please enter a valid age (number)."
INVALID_WEIGHT_TEXT = "Please enter a valid weight in kg (e.g., 70)."
INVALID_HEIGHT_TEXT = "Please enter a valid height in cm (e.g., 170)."
INVALID_BP_TEXT = "Please enter blood pressure in the format systolic/diastolic (e.g., 120/80)."

ASSESSMENT_HEADER = "✅ Your Health Risk Assessment"
ASSESSMENT_FAILED_TEXT = "❗ Sorry, I couldn’t get a response. Please try again later."
CONSULT_TEXT = "Would you like to consult a doctor?"
TRIAGE_HEADER = "🩺 AI Triage Recommendation:"
CONSULT_WITH_TRIAGE_TEXT = "Would you like to consult a doctor? If yes, please share your location to find nearby hospitals."
NO_THANKS_REPLY = "👍 Okay! If you need further help, just type /start."

SEARCHING_FACILITIES_TEXT = "🔎 Searching for nearby hospitals/clinics..."
FACILITIES_HEADER = "🏥 Nearby hospitals/clinics:"
NO_FACILITIES_TEXT = "Sorry, I couldn't find any hospitals nearby."

GENDER_CHOICES = [
    ("Male", "male"),
    ("Female", "female"),
    ("Other", "other"),
]
