from ministry_scanner.config.settings import SEARCH_MIN_LENGTH, SEARCH_LIMIT
from ministry_scanner.database.db_manager import DatabaseManager

class Church:
    """
    Church model for database operations.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def create(self, name: str, address: str = None):
        """
        Create a church and return its id.
        """
        query = "INSERT INTO churches (name, address) VALUES (?, ?)"
        try:
            return self.db.execute_update(query, (name, address))
        except Exception as e:
            self.db.logger.error(f"Failed to create church {name}: {e}")
            raise

    def delete(self, church_id: int):
        """
        Delete a church. Members keep their record with no church.
        """
        try:
            self.db.execute_update("DELETE FROM churches WHERE id = ?", (church_id,))
            return True
        except Exception as e:
            self.db.logger.error(f"Failed to delete church {church_id}: {e}")
            return False


class _PersonModel:
    """
    Shared queries for the member and minister tables.
    """
    table = None
    columns = ()
    label = None

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def _select(self):
        return f"SELECT * FROM {self.table}"

    def _filter_columns(self, values: dict):
        return {key: value for key, value in values.items() if key in self.columns}

    def create(self, first_name: str, last_name: str, **fields):
        """
        Create a record and return its id.

        Unknown field names are ignored.
        """
        values = self._filter_columns(fields)
        values['first_name'] = first_name
        values['last_name'] = last_name

        names = list(values)
        placeholders = ", ".join("?" for _ in names)
        query = f"INSERT INTO {self.table} ({', '.join(names)}) VALUES ({placeholders})"
        try:
            record_id = self.db.execute_update(query, tuple(values[name] for name in names))
            self.db.logger.info(f"Created {self.label} {record_id}: {first_name} {last_name}")
            return record_id
        except Exception as e:
            self.db.logger.error(f"Failed to create {self.label} {first_name} {last_name}: {e}")
            raise

    def get_by_id(self, record_id: int):
        query = f"{self._select()} WHERE {self.table}.id = ?"
        return self.db.fetch_one(query, (record_id,))

    def update(self, record_id: int, **fields):
        """
        Update the given fields of a record.

        Returns:
            bool: True if a row was written, False if nothing to update or on failure
        """
        values = self._filter_columns(fields)
        if not values:
            return False

        updates = [f"{name} = ?" for name in values]
        updates.append("updated_at = CURRENT_TIMESTAMP")
        params = list(values.values())
        params.append(record_id)
        query = f"UPDATE {self.table} SET {', '.join(updates)} WHERE id = ?"

        try:
            self.db.execute_update(query, tuple(params))
            self.db.logger.info(f"Updated {self.label} {record_id}: {', '.join(values)}")
            return True
        except Exception as e:
            self.db.logger.error(f"Failed to update {self.label} {record_id}: {e}")
            return False

    def delete(self, record_id: int):
        query = f"DELETE FROM {self.table} WHERE id = ?"
        try:
            self.db.execute_update(query, (record_id,))
            return True
        except Exception as e:
            self.db.logger.error(f"Failed to delete {self.label} {record_id}: {e}")
            return False

    def count(self):
        row = self.db.fetch_one(f"SELECT COUNT(*) AS total FROM {self.table}")
        return row["total"] if row else 0

    def search(self, query: str, limit: int = SEARCH_LIMIT):
        """
        Find records by name.

        Every word of the query must match a first, middle or last name;
        the whole query may also match "first last" or "first middle last".

        Args:
            query: Search text, at least SEARCH_MIN_LENGTH characters
            limit: Maximum number of rows

        Returns:
            list: Matching rows ordered by first then last name
        """
        query = (query or "").strip()
        if len(query) < SEARCH_MIN_LENGTH:
            return []

        t = self.table
        word_clauses = []
        params = []
        for word in query.split():
            like = f"%{word}%"
            word_clauses.append(
                f"({t}.first_name LIKE ? OR {t}.middle_name LIKE ? OR {t}.last_name LIKE ?)"
            )
            params.extend([like, like, like])

        like = f"%{query}%"
        conditions = [
            "(" + " AND ".join(word_clauses) + ")",
            f"({t}.first_name || ' ' || {t}.last_name) LIKE ?",
            f"({t}.first_name || ' ' || COALESCE({t}.middle_name || ' ', '') || {t}.last_name) LIKE ?",
        ]
        params.extend([like, like, limit])

        sql = f"""
            {self._select()}
            WHERE {' OR '.join(conditions)}
            ORDER BY {t}.first_name, {t}.last_name
            LIMIT ?
        """
        return [dict(row) for row in self.db.execute_query(sql, tuple(params))]

    def created_since(self, days: int):
        """
        Rows created during the last `days` calendar days, today included.
        """
        query = f"""
            SELECT * FROM {self.table}
            WHERE date(created_at) >= date('now', ?)
            ORDER BY created_at
        """
        offset = f"-{max(int(days) - 1, 0)} days"
        return [dict(row) for row in self.db.execute_query(query, (offset,))]


class Member(_PersonModel):
    """
    Member model for database operations.
    """
    table = "members"
    label = "member"
    columns = (
        'church_id', 'profile_picture', 'first_name', 'last_name', 'middle_name',
        'gender', 'birthdate', 'year_joined', 'marital_status', 'ministry_involvement',
        'occupation', 'organization', 'educational_attainment', 'school', 'degree',
        'mobile_number', 'email', 'home_address', 'facebook_link', 'x_link',
        'instagram_link', 'notes', 'is_active',
    )

    def _select(self):
        # Carry the church name along for display
        return """
            SELECT members.*, churches.name AS church_name
            FROM members
            LEFT JOIN churches ON members.church_id = churches.id
        """


class Minister(_PersonModel):
    """
    Minister model for database operations.
    """
    table = "ministers"
    label = "minister"
    columns = (
        'first_name', 'last_name', 'middle_name', 'suffix', 'nickname',
        'date_of_birth', 'place_of_birth', 'gender', 'civil_status', 'email',
        'telephone', 'address', 'present_address', 'permanent_address',
        'father_name', 'mother_name', 'spouse_name', 'wedding_date', 'skills',
        'hobbies', 'sports', 'certified_by', 'image_url',
    )
