# Collection Names
COLLECTIONS = {
    'users': 'users',
    'properties': 'properties',
    'rooms': 'rooms',
    'bills': 'bills',
    'payment_proofs': 'paymentProofs',
    'payment_history': 'paymentHistory',
    'notifications': 'notifications',
    'counters': 'counters',
}

# Collection Structure Documentation
COLLECTION_SCHEMAS = {
    'users': {
        'fields': ['first_name', 'last_name', 'email', 'phone', 'user_type', 'status', 'room_id', 'room_number', 'property_id', 'lease_start', 'lease_end', 'balance'],
        'required': ['email', 'user_type'],
        'indexes': ['user_type', 'status', 'property_id', 'room_number']
    },
    'properties': {
        'fields': ['owner_id', 'owner_email', 'name', 'address', 'description', 'amenities', 'total_rooms', 'occupied', 'vacancies'],
        'required': ['owner_id', 'name'],
        'indexes': ['owner_id']
    },
    'rooms': {
        'fields': ['property_id', 'owner_id', 'number', 'type', 'rent', 'size', 'utilities', 'status', 'tenant', 'tenant_id', 'meter_ids', 'lease_start', 'lease_end'],
        'required': ['property_id', 'owner_id', 'number', 'rent'],
        'indexes': ['property_id', 'owner_id', 'status']
    },
    'paymentProofs': {
        'fields': ['bill_id', 'invoice_id', 'tenant_id', 'tenant_name', 'landlord_id', 'property_name', 'room_number', 'amount', 'image_uri', 'note', 'status', 'submitted_at', 'reviewed_at', 'reviewed_by', 'review_note'],
        'required': ['bill_id', 'tenant_id', 'landlord_id', 'amount', 'image_uri', 'status'],
        'indexes': ['landlord_id', 'tenant_id', 'bill_id', 'status']
    },
    'bills': {
        'fields': ['tenant_id', 'tenant_name', 'tenant_email', 'property_id', 'property_name', 'room_id', 'room_number', 'landlord_id', 'invoice_id', 'amount', 'base_rent', 'utility_charges', 'charges', 'billing_period', 'due_date', 'status', 'payment_proof_id', 'payment_proofs', 'paid_at', 'payment_method', 'notes'],
        'required': ['tenant_id', 'property_id', 'room_id', 'landlord_id', 'invoice_id', 'amount', 'due_date', 'status'],
        'indexes': ['landlord_id', 'tenant_id', 'status', 'created_at']
    },
    'paymentHistory': {
        'fields': ['receipt_id', 'tenant_id', 'bill_id', 'invoice_id', 'amount', 'payment_date', 'due_date', 'month', 'year', 'property_name', 'room_number', 'tenant_name', 'status', 'payment_method', 'breakdown'],
        'required': ['receipt_id', 'tenant_id', 'bill_id', 'invoice_id', 'amount', 'payment_date'],
        'indexes': ['tenant_id', 'bill_id', 'payment_date']
    },
    'notifications': {
        'fields': ['recipient_id', 'type', 'title', 'message', 'tenant_name', 'property_name', 'room_number', 'is_read', 'context_type', 'context_id', 'application_data'],
        'required': ['recipient_id', 'type', 'title', 'message'],
        'indexes': ['recipient_id', 'type', 'is_read', 'created_at']
    },
    'counters': {
        'fields': ['year', 'counter', 'last_updated'],
        'required': ['counter'],
        'indexes': ['year']
    },
}
