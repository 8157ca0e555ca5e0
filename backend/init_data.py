"""
初始化主数据脚本
写入酒店类型、连锁集团、区域、设施四张参考表的默认记录，
按英文名去重，可重复执行。
"""
from hotel_admin.database import SessionLocal, init_db
from hotel_admin.services.master_data_service import get_master_data_service


MASTER_DATA = {
    "types": [
        {"name_en": "Hotel", "name_ar": "فندق"},
        {"name_en": "Apartment", "name_ar": "شقة"},
        {"name_en": "Resort", "name_ar": "منتجع"},
    ],
    "chains": [
        {"name_en": "Marriott International", "name_ar": "ماريوت الدولية"},
        {"name_en": "Hilton Worldwide", "name_ar": "هيلتون العالمية"},
        {"name_en": "Hyatt Hotels", "name_ar": "فنادق حياة"},
    ],
    "areas": [
        {"name_en": "Downtown Dubai", "name_ar": "وسط مدينة دبي"},
        {"name_en": "Dubai Marina", "name_ar": "دبي مارينا"},
        {"name_en": "Jumeirah Beach", "name_ar": "شاطئ جميرا"},
    ],
    "amenities": [
        {"name_en": "Gym/Fitness Centre", "name_ar": "نادي رياضي"},
        {"name_en": "Swimming Pool", "name_ar": "مسبح"},
        {"name_en": "Sauna", "name_ar": "ساونا"},
        {"name_en": "Spa", "name_ar": "سبا"},
    ],
}


def seed_master_data(db) -> dict:
    """返回每张表新增的记录数"""
    stats = {}
    for kind, records in MASTER_DATA.items():
        service = get_master_data_service(kind, db)
        created = 0
        for record in records:
            if service.find_by_name(record["name_en"]):
                continue
            result = service.create(record)
            if not result.succeeded:
                raise RuntimeError(f"初始化 {kind} 失败: {result.error}")
            created += 1
        stats[kind] = created
    return stats


def main():
    """主函数"""
    print("=" * 50)
    print("酒店库存后台 初始化主数据")
    print("=" * 50)

    # 初始化数据库
    init_db()
    print("数据库表创建完成")

    db = SessionLocal()
    try:
        stats = seed_master_data(db)
        for kind, created in stats.items():
            print(f"✓ {kind}: 新增 {created} 条")
    finally:
        db.close()


if __name__ == '__main__':
    main()
