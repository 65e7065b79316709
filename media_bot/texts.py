"""User-facing messages, picked by the user's Telegram language code."""

from typing import Dict, Optional

from .errors import ErrorKind

DEFAULT_LANG = "en"

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "start": (
            "Send me a YouTube or TikTok link and pick a quality.\n"
            "- TikTok photo posts are sent as an album.\n"
            "- /movie <name> searches for a movie.\n"
            "- Max file size: {max_mb}MB."
        ),
        "not_allowed": "🚫 This is a private bot.",
        "send_link": "Send a valid YouTube or TikTok link.",
        "fetching": "⏳ Checking the link...",
        "choose_quality": "🎬 {title}\n⏱ {duration}\n\nChoose a quality:",
        "downloading": "📥 Downloading \"{title}\" ({quality})...",
        "quality_substituted": "ℹ️ {requested}p is not available, sending {used} instead.",
        "quality_best": "ℹ️ {requested}p is not available, sending the best available quality.",
        "done": "✅ {title}\nSize: {size_mb:.1f}MB",
        "send_failed": "⚠️ Something went wrong while sending the file.",
        "photos_fetching": "🖼 Fetching photos...",
        "movie_usage": "Usage: /movie <movie name>",
        "movie_nothing": "Nothing found for \"{query}\".",
        "movie_results": "Results for \"{query}\":",
        "search_expired": "⌛ These results have expired. Please search again.",
        "details_range": "Please choose a number between 1 and {count}.",
        "no_overview": "No overview available.",
        ErrorKind.AUTH_REQUIRED.value: "🔒 This video requires sign-in. Cookies are missing or expired.",
        ErrorKind.PRIVATE_OR_MEMBERS_ONLY.value: "🔒 This video is private or for members only.",
        ErrorKind.UNAVAILABLE.value: "❌ This video is unavailable or was removed.",
        ErrorKind.FORMAT_UNAVAILABLE.value: "❌ The requested quality is not available for this video.",
        ErrorKind.MAX_FILESIZE.value: "📦 The file is larger than {max_mb}MB. Try a lower quality or mp3.",
        ErrorKind.FILENAME_TOO_LONG.value: "❌ Could not save the file (the name is too long).",
        ErrorKind.PARSE_FAILED.value: "❌ Could not read this TikTok photo post.",
        ErrorKind.IMAGES_NOT_FOUND.value: "❌ No photos were found in this post.",
        ErrorKind.API_KEY_MISSING.value: "⚙️ Movie search is not configured.",
        ErrorKind.LINK_EXPIRED.value: "⌛ This link has expired. Please send it again.",
        ErrorKind.UNKNOWN.value: "⚠️ Something went wrong. Please try again later.",
    },
    "ar": {
        "start": (
            "أرسل رابط يوتيوب أو تيك توك واختر الجودة.\n"
            "- منشورات الصور في تيك توك تصلك كألبوم.\n"
            "- /movie <اسم الفيلم> للبحث عن فيلم.\n"
            "- الحد الأقصى: {max_mb}MB."
        ),
        "not_allowed": "🚫 غير مسموح.",
        "send_link": "أرسل رابط يوتيوب أو تيك توك صالح.",
        "fetching": "⏳ جاري فحص الرابط...",
        "choose_quality": "🎬 {title}\n⏱ {duration}\n\nاختر الجودة:",
        "downloading": "📥 جاري تنزيل \"{title}\" ({quality})...",
        "quality_substituted": "ℹ️ الجودة {requested}p غير متوفرة، سيتم إرسال {used}.",
        "quality_best": "ℹ️ الجودة {requested}p غير متوفرة، سيتم إرسال أفضل جودة متاحة.",
        "done": "✅ {title}\nالحجم: {size_mb:.1f}MB",
        "send_failed": "⚠️ حدث خطأ أثناء إرسال الملف.",
        "photos_fetching": "🖼 جاري جلب الصور...",
        "movie_usage": "الاستخدام: /movie <اسم الفيلم>",
        "movie_nothing": "لا توجد نتائج لـ \"{query}\".",
        "movie_results": "نتائج \"{query}\":",
        "search_expired": "⌛ انتهت صلاحية النتائج. ابحث مرة أخرى.",
        "details_range": "اختر رقماً بين 1 و {count}.",
        "no_overview": "لا يوجد وصف.",
        ErrorKind.AUTH_REQUIRED.value: "🔒 الفيديو يتطلب تسجيل الدخول. الكوكيز غير موجودة أو منتهية.",
        ErrorKind.PRIVATE_OR_MEMBERS_ONLY.value: "🔒 الفيديو خاص أو للأعضاء فقط.",
        ErrorKind.UNAVAILABLE.value: "❌ الفيديو غير متوفر أو تم حذفه.",
        ErrorKind.FORMAT_UNAVAILABLE.value: "❌ الجودة المطلوبة غير متوفرة لهذا الفيديو.",
        ErrorKind.MAX_FILESIZE.value: "📦 الملف أكبر من {max_mb}MB. جرّب جودة أقل أو mp3.",
        ErrorKind.FILENAME_TOO_LONG.value: "❌ تعذر حفظ الملف (الاسم طويل جداً).",
        ErrorKind.PARSE_FAILED.value: "❌ تعذرت قراءة منشور الصور.",
        ErrorKind.IMAGES_NOT_FOUND.value: "❌ لم يتم العثور على صور في هذا المنشور.",
        ErrorKind.API_KEY_MISSING.value: "⚙️ البحث عن الأفلام غير مفعّل.",
        ErrorKind.LINK_EXPIRED.value: "⌛ انتهت صلاحية الرابط. أرسله مرة أخرى.",
        ErrorKind.UNKNOWN.value: "⚠️ حصل خطأ غير متوقع. حاول لاحقاً.",
    },
}


def pick_lang(language_code: Optional[str]) -> str:
    code = (language_code or "").split("-")[0].lower()
    return code if code in MESSAGES else DEFAULT_LANG


def t(lang: str, key: str, **kwargs) -> str:
    table = MESSAGES.get(lang, MESSAGES[DEFAULT_LANG])
    template = table.get(key) or MESSAGES[DEFAULT_LANG][key]
    return template.format(**kwargs) if kwargs else template


def error_text(lang: str, kind: ErrorKind, **kwargs) -> str:
    return t(lang, kind.value, **kwargs)
