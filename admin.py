import asyncio
import streamlit as st

from app.core.errors import BookingError
from app.services.db_service import db_service
from app.services.report_service import bookings_dataframe, status_counts, daily_summary

# Page Config
st.set_page_config(
    page_title="Booking4U Admin",
    page_icon="📅",
    layout="centered"
)

# Header
st.title("Booking4U - لوحة الإدارة")

business_id = st.text_input("معرف النشاط التجاري")

def load_data(business_id: str):
    try:
        bookings = asyncio.run(db_service.all_bookings_for_business(business_id))
    except BookingError as e:
        st.error(f"خطأ في جلب الحجوزات: {e.message}")
        return None
    return bookings_dataframe(bookings)

# Load Data
if st.button("تحديث البيانات"):
    st.rerun()

df = load_data(business_id) if business_id else None

if df is not None and not df.empty:
    counts = status_counts(df)

    col1, col2, col3 = st.columns(3)
    col1.metric("إجمالي الحجوزات", len(df))
    col2.metric("قيد الانتظار", int(counts["pending"]))
    col3.metric("مكتملة", int(counts["completed"]))

    st.subheader("الحجوزات اليومية")
    st.bar_chart(daily_summary(df), x="date", y="bookings")

    st.subheader("قائمة الحجوزات")
    st.dataframe(
        df,
        use_container_width=True,
        column_config={
            "date": st.column_config.DateColumn("التاريخ", format="D.M.YYYY"),
            "start_time": "من",
            "end_time": "إلى",
            "status": "الحالة",
            "service_name": "الخدمة",
            "total_price": "السعر",
            "id": "ID"
        }
    )
elif business_id:
    st.info("لا توجد حجوزات لهذا النشاط التجاري بعد.")

# Footer
st.markdown("---")
st.caption("Booking4U • Admin")
