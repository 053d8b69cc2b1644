from livingdoc_core.db.database import init_db


def main():
    init_db()
    print("✅ DB creada/verificada usando DATABASE_URL.")


if __name__ == "__main__":
    main()
